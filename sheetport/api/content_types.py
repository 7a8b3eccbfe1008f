"""Content-type endpoints: browse schemas, suggest mappings, preview validation."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from sheetport.api.deps import (
    get_content_type,
    get_oracle,
    get_registry,
    parse_mappings_form,
    parse_upload,
    save_upload,
)
from sheetport.core.content_types import ContentTypeRegistry
from sheetport.core.field_mapper import suggest_mappings
from sheetport.core.mapping_oracle import OllamaMappingOracle
from sheetport.core.models import (
    ContentType,
    ContentTypeSummary,
    SuggestMappingsRequest,
    SuggestMappingsResponse,
    ValidationResult,
)
from sheetport.core.row_validator import validate_content, validate_rows

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/content-types", response_model=list[ContentTypeSummary])
async def list_content_types(registry: ContentTypeRegistry = Depends(get_registry)):
    """List all content types available for import."""
    summaries = []
    for ct_id in registry.list_ids():
        try:
            ct = registry.get(ct_id)
        except (FileNotFoundError, ValueError) as e:
            logger.warning(f"Skipping content type '{ct_id}': {e}")
            continue
        summaries.append(ContentTypeSummary(
            id=ct.id,
            name=ct.name,
            description=ct.description,
            field_count=len(ct.fields),
        ))
    return summaries


@router.get("/content-types/{ct}", response_model=ContentType)
async def get_content_type_detail(content_type: ContentType = Depends(get_content_type)):
    """Get the full field list of a content type."""
    return content_type


@router.post("/content-types/{ct}/mappings/suggest", response_model=SuggestMappingsResponse)
async def suggest_content_type_mappings(
    body: SuggestMappingsRequest,
    content_type: ContentType = Depends(get_content_type),
    oracle: OllamaMappingOracle = Depends(get_oracle),
):
    """Suggest column → field mappings for the given spreadsheet headers."""
    mappings = await suggest_mappings(body.headers, content_type.fields, oracle)
    return SuggestMappingsResponse(mappings=mappings)


@router.post("/content-types/{ct}/validate", response_model=ValidationResult)
async def validate_upload(
    file: UploadFile = File(...),
    mappings: Optional[str] = Form(None),
    content_type: ContentType = Depends(get_content_type),
    oracle: OllamaMappingOracle = Depends(get_oracle),
):
    """Preview-validate an uploaded file.

    - **file**: CSV or Excel file
    - **mappings**: optional JSON list of field mappings; suggested when omitted
    """
    file_path = await save_upload(file)
    parsed = parse_upload(file_path)

    if mappings is None:
        return await validate_content(parsed, content_type, oracle)
    return validate_rows(parsed.rows, parse_mappings_form(mappings), content_type.fields)
