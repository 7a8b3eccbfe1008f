"""Import endpoints — upload a file and write its rows as records.

Mappings come either from a saved import profile or from a JSON form field.
The import runs inline and returns the full ImportResult.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from sheetport.api.deps import (
    get_content_type,
    get_store,
    parse_mappings_form,
    parse_upload,
    save_upload,
)
from sheetport.core.config import settings
from sheetport.core.import_engine import run_import
from sheetport.core.models import ContentType, ImportConfig, ImportResult
from sheetport.core.profile_loader import list_profiles, load_profile
from sheetport.core.record_store import NebulaRecordStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/profiles", response_model=list[str])
async def get_profiles():
    """List saved import profiles."""
    return list_profiles()


def _build_config(
    content_type: ContentType,
    profile_name: Optional[str],
    mappings: Optional[str],
    locale: Optional[str],
    publish_immediately: bool,
    upsert_field: Optional[str],
) -> ImportConfig:
    if profile_name:
        try:
            config = load_profile(profile_name)
        except FileNotFoundError:
            raise HTTPException(status_code=400, detail=f"Import profile '{profile_name}' not found")
        except Exception as e:
            raise HTTPException(status_code=400, detail=f"Invalid import profile: {e}")
        if config.content_type_id != content_type.id:
            raise HTTPException(
                status_code=400,
                detail=f"Profile '{profile_name}' targets '{config.content_type_id}', "
                       f"not '{content_type.id}'",
            )
        if locale:
            config.locale = locale
        return config

    if mappings is None:
        raise HTTPException(status_code=400, detail="Provide either profile_name or mappings")

    return ImportConfig(
        content_type_id=content_type.id,
        locale=locale or settings.default_locale,
        publish_immediately=publish_immediately,
        field_mappings=parse_mappings_form(mappings),
        upsert_field=upsert_field,
    )


@router.post("/content-types/{ct}/imports", response_model=ImportResult)
async def create_import(
    file: UploadFile = File(...),
    profile_name: Optional[str] = Form(None),
    mappings: Optional[str] = Form(None),
    locale: Optional[str] = Form(None),
    publish_immediately: bool = Form(False),
    upsert_field: Optional[str] = Form(None),
    content_type: ContentType = Depends(get_content_type),
    store: NebulaRecordStore = Depends(get_store),
):
    """Upload a CSV/Excel file and import its rows.

    - **file**: CSV or Excel file
    - **profile_name**: saved import profile (without .yaml extension)
    - **mappings**: JSON list of field mappings, used when no profile is given
    """
    config = _build_config(
        content_type, profile_name, mappings, locale, publish_immediately, upsert_field,
    )
    file_path = await save_upload(file)
    parsed = parse_upload(file_path)

    try:
        result = await run_import(parsed.rows, config, content_type, store)
    except Exception as e:
        logger.error(f"Import failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Import failed: {e}")

    if result.errors:
        logger.info(f"Import {result.import_run_id} finished with {len(result.errors)} row errors")
    return result
