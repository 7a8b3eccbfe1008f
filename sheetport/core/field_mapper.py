"""Field Mapper — proposes column → field mappings.

The mapping oracle is consulted first when one is supplied and available.
Any oracle failure degrades to a deterministic string-similarity matcher;
``suggest_mappings`` itself never raises.
"""

import asyncio
import logging
import re
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from sheetport.core.config import settings
from sheetport.core.errors import MappingError
from sheetport.core.mapping_oracle import MappingOracle
from sheetport.core.models import FieldDefinition, FieldMapping

logger = logging.getLogger(__name__)

EXACT_MATCH_CONFIDENCE = 0.8
PARTIAL_MATCH_CONFIDENCE = 0.5

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_mapping_list = TypeAdapter(list[FieldMapping])


def normalize_name(value: str) -> str:
    """Lower-case and strip everything that is not a-z or 0-9."""
    return _NON_ALNUM_RE.sub("", value.lower())


def _contains(a: str, b: str) -> bool:
    return bool(b) and (b in a or a in b)


def fallback_field_mapping(
    source_headers: list[str],
    target_fields: list[FieldDefinition],
) -> list[FieldMapping]:
    """Match headers to fields by normalized id/name.

    Exact matches (confidence 0.8) are preferred over substring containment
    in either direction (confidence 0.5). Ties go to the field declared
    first. Headers matching nothing are left out.
    """
    normalized_fields = [
        (f, normalize_name(f.id), normalize_name(f.name)) for f in target_fields
    ]
    mappings: list[FieldMapping] = []

    for header in source_headers:
        h = normalize_name(header)
        if not h:
            continue

        match: Optional[FieldMapping] = None
        for f, fid, fname in normalized_fields:
            if h == fid or h == fname:
                match = FieldMapping(
                    source_field=header,
                    target_field=f.id,
                    confidence=EXACT_MATCH_CONFIDENCE,
                )
                break

        if match is None:
            for f, fid, fname in normalized_fields:
                if _contains(h, fid) or _contains(h, fname):
                    match = FieldMapping(
                        source_field=header,
                        target_field=f.id,
                        confidence=PARTIAL_MATCH_CONFIDENCE,
                    )
                    break

        if match is not None:
            mappings.append(match)

    return mappings


def parse_oracle_mappings(raw: Any) -> list[FieldMapping]:
    """Validate an oracle answer; raise MappingError if it is malformed."""
    if isinstance(raw, dict) and "mappings" in raw:
        raw = raw["mappings"]
    try:
        mappings = _mapping_list.validate_python(raw)
    except ValidationError as e:
        raise MappingError(f"Malformed oracle mappings: {e}") from e

    sources = [m.source_field for m in mappings]
    if len(sources) != len(set(sources)):
        raise MappingError("Oracle mapped a source column more than once")
    return mappings


async def suggest_mappings(
    source_headers: list[str],
    target_fields: list[FieldDefinition],
    oracle: Optional[MappingOracle] = None,
) -> list[FieldMapping]:
    """Suggest mappings between spreadsheet columns and content-type fields."""
    if oracle is None or not oracle.available:
        return fallback_field_mapping(source_headers, target_fields)

    descriptors = [f.descriptor() for f in target_fields]
    try:
        raw = await asyncio.wait_for(
            oracle.suggest(source_headers, descriptors),
            timeout=settings.ollama_timeout_seconds,
        )
        return parse_oracle_mappings(raw)
    except asyncio.TimeoutError:
        logger.warning("Mapping oracle timed out, using fallback matcher")
    except MappingError as e:
        logger.warning(f"Mapping oracle failed, using fallback matcher: {e}")
    except Exception as e:
        logger.warning(f"Mapping oracle unreachable, using fallback matcher: {e}")

    return fallback_field_mapping(source_headers, target_fields)
