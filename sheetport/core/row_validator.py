"""Row Validator — preview validation of mapped rows against a content type.

Two independent checks:
1. Coverage: required fields without a confident mapping (warnings).
2. Per-cell: the first N rows (settings.validation_sample_size) are checked
   against each mapped field's kind (errors).

This is a sampling preview; it never gates the import of the full file and
never raises. GeoPoint ranges are only enforced later, at transform time.
"""

import logging
from typing import Optional

from sheetport.core.config import settings
from sheetport.core.field_mapper import suggest_mappings
from sheetport.core.mapping_oracle import MappingOracle
from sheetport.core.models import (
    CellValue,
    ContentRow,
    ContentType,
    FieldDefinition,
    FieldKind,
    FieldMapping,
    ParsedFile,
    ValidationIssue,
    ValidationResult,
)
from sheetport.core.value_transforms import (
    FALSE_VALUES,
    TRUE_VALUES,
    as_text,
    load_json,
    parse_number,
)

logger = logging.getLogger(__name__)

# Data rows are reported 1-based, after the header row.
ROW_NUMBER_OFFSET = 2

COVERAGE_CONFIDENCE_THRESHOLD = 0.5
REVIEW_CONFIDENCE_THRESHOLD = 0.7


def _is_empty(value: CellValue) -> bool:
    return value is None or value == ""


def _check_kind(value: CellValue, field: FieldDefinition) -> Optional[str]:
    """Return an error message if ``value`` does not fit ``field.kind``."""
    text = as_text(value)
    kind = field.kind

    if kind == FieldKind.INTEGER:
        number = parse_number(value)
        if number is None or number != int(number):
            return f'"{field.name}" should be a whole number'
    elif kind == FieldKind.DECIMAL:
        if parse_number(value) is None:
            return f'"{field.name}" should be a number'
    elif kind == FieldKind.BOOLEAN:
        if not isinstance(value, bool) and text.lower() not in TRUE_VALUES | FALSE_VALUES:
            return f'"{field.name}" should be a boolean value (true/false, yes/no, 1/0)'
    elif kind == FieldKind.REFERENCE:
        # Lookup expressions are accepted here; existence is checked at import.
        if not text:
            return (
                f'"{field.name}" requires a record/asset ID or lookup reference '
                f'(e.g. "lookup:slug:my-article")'
            )
    elif kind == FieldKind.ARRAY:
        if not text:
            return f'"{field.name}" should be a comma-separated list of values'
    elif kind == FieldKind.JSON_OBJECT:
        try:
            parsed = load_json(text)
        except ValueError:
            return f'"{field.name}" contains invalid JSON'
        if not isinstance(parsed, dict):
            return f'"{field.name}" should be a JSON object (e.g. {{"key": "value"}})'
    elif kind == FieldKind.GEO_POINT:
        parts = text.split(",")
        if len(parts) != 2 or any(parse_number(p) is None for p in parts):
            return f'"{field.name}" should be in "lat,lon" format (e.g. "40.7128,-74.0060")'
    return None


def validate_field_value(
    value: CellValue,
    field: FieldDefinition,
    row_number: int,
    source_field: str,
) -> list[ValidationIssue]:
    """Validate one cell against its target field."""
    if _is_empty(value):
        if field.required:
            return [ValidationIssue(
                row=row_number,
                field=source_field,
                message=f'Required field "{field.name}" is empty',
                value=value,
            )]
        return []

    message = _check_kind(value, field)
    if message is None:
        return []
    return [ValidationIssue(row=row_number, field=source_field, message=message, value=value)]


def check_coverage(
    mappings: list[FieldMapping],
    schema: list[FieldDefinition],
) -> list[ValidationIssue]:
    """Warn about required fields that no confident mapping targets."""
    warnings = []
    for field in schema:
        if not field.required:
            continue
        mapping = next((m for m in mappings if m.target_field == field.id), None)
        if mapping is None or mapping.confidence < COVERAGE_CONFIDENCE_THRESHOLD:
            warnings.append(ValidationIssue(
                field=field.id,
                message=f'Required field "{field.name}" may not have a matching column in your file',
            ))
    return warnings


def validate_rows(
    rows: list[ContentRow],
    mappings: list[FieldMapping],
    schema: list[FieldDefinition],
    sample_size: Optional[int] = None,
) -> ValidationResult:
    """Preview-validate rows; returns errors, warnings and suggestions."""
    sample_size = settings.validation_sample_size if sample_size is None else sample_size
    fields_by_id = {f.id: f for f in schema}

    errors: list[ValidationIssue] = []
    warnings = check_coverage(mappings, schema)
    suggestions: list[str] = []

    for i, row in enumerate(rows[:sample_size]):
        row_number = i + ROW_NUMBER_OFFSET
        for mapping in mappings:
            field = fields_by_id.get(mapping.target_field)
            if field is None:
                continue
            errors.extend(validate_field_value(
                row.get(mapping.source_field), field, row_number, mapping.source_field,
            ))

    if any(m.confidence < REVIEW_CONFIDENCE_THRESHOLD for m in mappings):
        suggestions.append(
            "Some field mappings have low confidence. "
            "Please review and adjust the mappings before importing."
        )

    if len(rows) > sample_size:
        suggestions.append(
            f"Only the first {sample_size} of {len(rows)} rows were validated. "
            f"All rows will be imported."
        )

    logger.info(
        f"Validated {min(len(rows), sample_size)}/{len(rows)} rows: "
        f"{len(errors)} errors, {len(warnings)} warnings"
    )
    return ValidationResult(
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
        mapped_fields=mappings,
    )


async def validate_content(
    parsed_file: ParsedFile,
    content_type: ContentType,
    oracle: Optional[MappingOracle] = None,
) -> ValidationResult:
    """Suggest mappings for a parsed file, then preview-validate its rows."""
    mappings = await suggest_mappings(parsed_file.headers, content_type.fields, oracle)
    return validate_rows(parsed_file.rows, mappings, content_type.fields)
