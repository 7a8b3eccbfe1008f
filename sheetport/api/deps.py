"""FastAPI dependencies shared by the content-type and import routers."""

from pathlib import Path

from fastapi import HTTPException, Request, UploadFile
from pydantic import TypeAdapter, ValidationError

from sheetport.core.config import settings
from sheetport.core.content_types import ContentTypeRegistry
from sheetport.core.mapping_oracle import OllamaMappingOracle
from sheetport.core.models import ContentType, FieldMapping, ParsedFile
from sheetport.core.record_store import NebulaRecordStore, generate_id
from sheetport.core.tabular_reader import CSV_SUFFIXES, EXCEL_SUFFIXES, parse_file

UPLOAD_SUFFIXES = CSV_SUFFIXES + EXCEL_SUFFIXES

_MAPPINGS_ADAPTER = TypeAdapter(list[FieldMapping])


def get_registry(request: Request) -> ContentTypeRegistry:
    return request.app.state.registry


def get_oracle(request: Request) -> OllamaMappingOracle:
    return request.app.state.oracle


def get_store(request: Request) -> NebulaRecordStore:
    return request.app.state.store


def get_content_type(ct: str, request: Request) -> ContentType:
    """Resolve the ``{ct}`` path segment to a loaded content type.

    Raises 404 if no such content type exists, 400 if its definition is invalid.
    """
    registry = get_registry(request)
    try:
        return registry.get(ct)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Content type '{ct}' not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid content type '{ct}': {e}")


async def save_upload(file: UploadFile) -> Path:
    """Store an uploaded CSV/Excel file under the uploads directory."""
    if not file.filename or not file.filename.lower().endswith(UPLOAD_SUFFIXES):
        raise HTTPException(
            status_code=400,
            detail="Unsupported file format. Please upload a CSV or Excel file.",
        )

    upload_dir = settings.resolve_path(settings.uploads_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    file_path = upload_dir / f"{generate_id('up_')}_{Path(file.filename).name}"
    file_path.write_bytes(await file.read())
    return file_path


def parse_mappings_form(mappings: str) -> list[FieldMapping]:
    """Parse a JSON list of mappings sent as a form field."""
    try:
        return _MAPPINGS_ADAPTER.validate_json(mappings)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid field mappings: {e}")


def parse_upload(file_path: Path) -> ParsedFile:
    """Parse a stored upload; unreadable or row-less files are a 400."""
    try:
        parsed = parse_file(file_path)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not parsed.headers or not parsed.rows:
        raise HTTPException(status_code=400, detail="; ".join(parsed.errors))
    return parsed
