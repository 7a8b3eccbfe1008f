"""Shared test fixtures for the Sheetport test suite."""

from typing import Any, Optional

from sheetport.core.models import (
    ArrayItems,
    ContentType,
    FieldDefinition,
    FieldKind,
    FieldMapping,
    ReferenceTarget,
)


def make_field(
    field_id: str = "title",
    kind: FieldKind = FieldKind.SHORT_TEXT,
    name: Optional[str] = None,
    required: bool = False,
    reference_target: Optional[ReferenceTarget] = None,
    items: Optional[ArrayItems] = None,
    **kwargs,
) -> FieldDefinition:
    """Helper to create field definitions for testing."""
    return FieldDefinition(
        id=field_id,
        name=name or field_id,
        kind=kind,
        required=required,
        reference_target=reference_target,
        items=items,
        **kwargs,
    )


def make_content_type(
    content_type_id: str = "article",
    fields: Optional[list[FieldDefinition]] = None,
) -> ContentType:
    """Helper to create an article-like content type."""
    if fields is None:
        fields = [
            make_field("title", required=True, name="Title"),
            make_field("slug", required=True, name="Slug"),
            make_field("views", FieldKind.INTEGER, name="Views"),
            make_field("featured", FieldKind.BOOLEAN, name="Featured"),
            make_field(
                "author", FieldKind.REFERENCE, name="Author",
                reference_target=ReferenceTarget.RECORD,
            ),
            make_field(
                "tags", FieldKind.ARRAY, name="Tags",
                items=ArrayItems(kind=FieldKind.SHORT_TEXT),
            ),
        ]
    return ContentType(id=content_type_id, name=content_type_id.title(), fields=fields)


def make_mapping(source: str, target: str, confidence: float = 1.0) -> FieldMapping:
    return FieldMapping(source_field=source, target_field=target, confidence=confidence)


class InMemoryRecordStore:
    """Async RecordStore keeping records in a dict; lookups scan field values."""

    def __init__(self, locale: str = "en-US"):
        self.locale = locale
        self.records: dict[str, dict[str, Any]] = {}
        self.published: list[str] = []
        self._next = 1

    def seed(self, record_id: str, content_type_id: str, **values: Any) -> None:
        self.records[record_id] = {
            "content_type": content_type_id,
            "fields": {k: {self.locale: v} for k, v in values.items()},
        }

    async def find_record_id(
        self, field_id: str, value: str, content_type_id: Optional[str] = None,
    ) -> Optional[str]:
        for record_id, record in self.records.items():
            if content_type_id and record["content_type"] != content_type_id:
                continue
            stored = record["fields"].get(field_id, {}).get(self.locale)
            if stored is not None and str(stored) == value:
                return record_id
        return None

    async def create_record(self, content_type_id: str, fields: dict[str, Any]) -> str:
        record_id = f"rec_{self._next}"
        self._next += 1
        self.records[record_id] = {"content_type": content_type_id, "fields": fields}
        return record_id

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> str:
        self.records[record_id]["fields"] = fields
        return record_id

    async def publish_record(self, record_id: str) -> None:
        self.published.append(record_id)
