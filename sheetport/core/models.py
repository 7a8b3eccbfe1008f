"""Pydantic models for content types, mappings, validation and import results."""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

# A spreadsheet cell as handed over by the tabular reader.
CellValue = Optional[Union[bool, int, float, str]]
ContentRow = dict[str, CellValue]


class FieldKind(str, Enum):
    SHORT_TEXT = "ShortText"
    LONG_TEXT = "LongText"
    INTEGER = "Integer"
    DECIMAL = "Decimal"
    BOOLEAN = "Boolean"
    DATE = "Date"
    REFERENCE = "Reference"
    ARRAY = "Array"
    STRUCTURED_TEXT = "StructuredText"
    JSON_OBJECT = "JsonObject"
    GEO_POINT = "GeoPoint"


class ReferenceTarget(str, Enum):
    RECORD = "Record"
    ASSET = "Asset"


class ImportAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class RecordStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


# --- Content types (schema provider) ---


class ArrayItems(BaseModel):
    kind: FieldKind
    reference_target: Optional[ReferenceTarget] = None


class FieldDefinition(BaseModel):
    id: str
    name: str
    kind: FieldKind
    required: bool = False
    localized: bool = False
    reference_target: Optional[ReferenceTarget] = None
    items: Optional[ArrayItems] = None

    def descriptor(self) -> dict[str, str]:
        """Reduced view sent to the mapping oracle."""
        return {"id": self.id, "name": self.name, "type": self.kind.value}


class ContentType(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    fields: list[FieldDefinition] = []

    def get_field(self, field_id: str) -> Optional[FieldDefinition]:
        for f in self.fields:
            if f.id == field_id:
                return f
        return None


# --- Mappings ---


class FieldMapping(BaseModel):
    """Correspondence between one source column and one target field.

    Accepts both snake_case and the camelCase keys used by the oracle.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source_field: str
    target_field: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    transform_required: Optional[bool] = None
    transform_description: Optional[str] = None


# --- Validation ---


class ValidationIssue(BaseModel):
    row: Optional[int] = None
    field: str
    message: str
    value: CellValue = None


class ValidationResult(BaseModel):
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    suggestions: list[str] = []
    mapped_fields: list[FieldMapping] = []

    @computed_field
    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0


# --- Tabular source ---


class ParsedFile(BaseModel):
    file_name: str
    headers: list[str]
    rows: list[ContentRow]
    total_rows: int
    errors: list[str] = []


# --- Import ---


class ImportConfig(BaseModel):
    content_type_id: str
    locale: str = "en-US"
    publish_immediately: bool = False
    field_mappings: list[FieldMapping] = []
    default_values: dict[str, Any] = {}
    upsert_field: Optional[str] = None


class ImportRowError(BaseModel):
    row: int
    message: str
    details: Optional[str] = None


class ImportedRecord(BaseModel):
    row: int
    record_id: str
    content_type: str
    action: ImportAction
    status: RecordStatus


class ImportResult(BaseModel):
    import_run_id: str
    status: str  # "completed" | "cancelled" | "failed"
    success: bool = True
    total_processed: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[ImportRowError] = []
    records: list[ImportedRecord] = []


# --- API request/response models ---


class ContentTypeSummary(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    field_count: int


class SuggestMappingsRequest(BaseModel):
    headers: list[str]


class SuggestMappingsResponse(BaseModel):
    mappings: list[FieldMapping]
