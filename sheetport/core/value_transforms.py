"""Value Transform Engine — type-directed coercion of spreadsheet cells.

Converts flat cell values into the structured values a record field of a
given kind stores. Spreadsheet conventions:

    Reference     -> record id, or "lookup:<fieldId>:<value>"
    Multi-ref     -> comma-separated record/asset ids
    StructuredText-> markup string (see rich_text)
    JsonObject    -> raw JSON object string
    GeoPoint      -> "lat,lon"

Dispatch is on the target field's kind, never on the runtime type of the
raw value. Malformed input raises TransformError; nothing is dropped
silently.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Optional, Union

from sheetport.core.errors import TransformError
from sheetport.core.models import (
    CellValue,
    FieldDefinition,
    FieldKind,
    ReferenceTarget,
)
from sheetport.core.rich_text import compile_markup

LOOKUP_PREFIX = "lookup:"

TRUE_VALUES = {"true", "yes", "1", "y"}
FALSE_VALUES = {"false", "no", "0", "n"}


@dataclass(frozen=True)
class DeferredReference:
    """Placeholder for "the record whose ``lookup_field`` equals ``lookup_value``".

    Replaced by the reference resolver before the record is stored.
    """
    lookup_field: str
    lookup_value: str
    reference_target: str = ReferenceTarget.RECORD.value


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def as_text(value: CellValue) -> str:
    """Render a cell value as text; whole floats lose their ``.0``."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, str):
        return value.strip()
    return str(value)


def parse_number(value: CellValue) -> Optional[Union[int, float]]:
    """Coerce a cell value to a finite number, or None when impossible."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    text = value.strip()
    # Reject Python-only digit grouping such as "1_000".
    if text == "" or "_" in text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not allowed in JSON")


def load_json(text: str) -> Any:
    """Parse strict JSON text. Raises ValueError for anything malformed.

    NaN/Infinity are rejected, and so is input nested deeper than the
    decoder can recurse.
    """
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except RecursionError as e:
        raise ValueError("JSON is nested too deeply") from e


def link(record_id: str, target: ReferenceTarget = ReferenceTarget.RECORD) -> dict:
    """Build an immediate reference value."""
    return {"sys": {"type": "Link", "linkType": target.value, "id": record_id.strip()}}


def split_list(text: str) -> list[str]:
    """Split a comma-separated cell, trimming pieces and dropping empty ones."""
    return [piece.strip() for piece in text.split(",") if piece.strip()]


# ---------------------------------------------------------------------------
# Lookup expressions
# ---------------------------------------------------------------------------

def is_lookup(text: str) -> bool:
    return text.strip().startswith(LOOKUP_PREFIX)


def parse_lookup(text: str, field_id: str = "") -> DeferredReference:
    """Parse ``lookup:<fieldId>:<value>``; the value may itself contain colons."""
    parts = text.strip().split(":")
    if len(parts) < 3 or not parts[1]:
        raise TransformError(
            field_id, text,
            'invalid lookup format, expected "lookup:<fieldId>:<value>"',
        )
    return DeferredReference(lookup_field=parts[1], lookup_value=":".join(parts[2:]))


# ---------------------------------------------------------------------------
# Per-kind converters
# ---------------------------------------------------------------------------

def to_integer(value: CellValue, field_id: str) -> int:
    number = parse_number(value)
    if number is None or number != int(number):
        raise TransformError(field_id, value, "not a whole number")
    return int(number)


def to_decimal(value: CellValue, field_id: str) -> Union[int, float]:
    number = parse_number(value)
    if number is None:
        raise TransformError(field_id, value, "cannot convert to a number")
    return number


def to_boolean(value: CellValue, field_id: str) -> bool:
    if isinstance(value, bool):
        return value
    text = as_text(value).lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise TransformError(field_id, value, "cannot convert to boolean")


def to_reference(text: str, field: FieldDefinition) -> Union[dict, DeferredReference]:
    if field.reference_target == ReferenceTarget.ASSET:
        return link(text, ReferenceTarget.ASSET)
    if is_lookup(text):
        return parse_lookup(text, field.id)
    return link(text)


def to_array(text: str, field: FieldDefinition) -> list:
    items = field.items
    pieces = split_list(text)
    if items is not None and items.kind == FieldKind.REFERENCE:
        target = items.reference_target or ReferenceTarget.RECORD
        # Lookup expressions are only honoured on single references.
        return [link(piece, target) for piece in pieces]
    return pieces


def to_json_object(text: str, field_id: str) -> dict:
    try:
        parsed = load_json(text)
    except ValueError as e:
        raise TransformError(
            field_id, text,
            f'invalid JSON ({e}), expected an object like {{"key": "value"}}',
        ) from e
    if not isinstance(parsed, dict):
        raise TransformError(
            field_id, text,
            "value must be a JSON object (not an array or primitive)",
        )
    return parsed


def to_geo_point(text: str, field_id: str) -> dict[str, float]:
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 2:
        raise TransformError(
            field_id, text, 'invalid location format, expected "lat,lon"',
        )

    lat = parse_number(parts[0])
    lon = parse_number(parts[1])
    if lat is None or lon is None:
        raise TransformError(
            field_id, text, "both latitude and longitude must be numbers",
        )
    if lat < -90 or lat > 90:
        raise TransformError(
            field_id, text, f"latitude {lat} is out of range, must be between -90 and 90",
        )
    if lon < -180 or lon > 180:
        raise TransformError(
            field_id, text, f"longitude {lon} is out of range, must be between -180 and 180",
        )
    return {"lat": float(lat), "lon": float(lon)}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def transform_value(value: CellValue, field: FieldDefinition) -> Any:
    """Coerce a raw cell value into the stored value for ``field``.

    Returns the final value, or a DeferredReference for a lookup expression
    in a single Reference field. Raises TransformError on malformed input.
    """
    if value is None:
        raise TransformError(field.id, value, "value is absent")

    text = as_text(value)
    kind = field.kind

    if kind in (FieldKind.SHORT_TEXT, FieldKind.LONG_TEXT, FieldKind.DATE):
        return text
    if kind == FieldKind.INTEGER:
        return to_integer(value, field.id)
    if kind == FieldKind.DECIMAL:
        return to_decimal(value, field.id)
    if kind == FieldKind.BOOLEAN:
        return to_boolean(value, field.id)
    if kind == FieldKind.REFERENCE:
        return to_reference(text, field)
    if kind == FieldKind.ARRAY:
        return to_array(text, field)
    if kind == FieldKind.STRUCTURED_TEXT:
        return compile_markup(text)
    if kind == FieldKind.JSON_OBJECT:
        return to_json_object(text, field.id)
    if kind == FieldKind.GEO_POINT:
        return to_geo_point(text, field.id)

    raise TransformError(field.id, value, f"unsupported field kind {kind!r}")
