"""Content Type Registry — loads and validates YAML content-type definitions.

A content type lists the ordered, typed fields of one kind of record. The
registry is the schema provider for mapping, validation and import.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from sheetport.core.config import settings
from sheetport.core.models import ContentType, FieldDefinition, FieldKind

logger = logging.getLogger(__name__)


def _parse_field(raw: dict) -> FieldDefinition:
    """Parse a field entry, accepting ``type`` as an alias for ``kind``."""
    data = dict(raw)
    if "kind" not in data and "type" in data:
        data["kind"] = data.pop("type")
    if "name" not in data and "id" in data:
        data["name"] = data["id"]
    items = data.get("items")
    if isinstance(items, dict) and "kind" not in items and "type" in items:
        items = dict(items)
        items["kind"] = items.pop("type")
        data["items"] = items
    return FieldDefinition(**data)


def validate_content_type(content_type: ContentType) -> list[str]:
    """Check field definitions. Returns error messages (empty = valid)."""
    errors: list[str] = []
    seen: set[str] = set()

    for f in content_type.fields:
        if f.id in seen:
            errors.append(f"Content type '{content_type.id}': duplicate field id '{f.id}'")
        seen.add(f.id)

        if f.kind == FieldKind.ARRAY:
            if f.items is None:
                errors.append(
                    f"Content type '{content_type.id}'.{f.id}: Array fields must declare items"
                )
            elif f.items.kind == FieldKind.ARRAY:
                errors.append(
                    f"Content type '{content_type.id}'.{f.id}: nested arrays are not supported"
                )
            elif f.items.kind == FieldKind.REFERENCE and f.items.reference_target is None:
                errors.append(
                    f"Content type '{content_type.id}'.{f.id}: reference items must "
                    f"declare reference_target"
                )
        if f.kind == FieldKind.REFERENCE and f.reference_target is None:
            errors.append(
                f"Content type '{content_type.id}'.{f.id}: Reference fields must "
                f"declare reference_target"
            )

    return errors


class ContentTypeRegistry:
    """Loads, validates, and caches content types from a directory of YAML files."""

    def __init__(self, schemas_dir: Optional[str] = None):
        self._content_types: dict[str, ContentType] = {}
        self._schemas_dir = settings.resolve_path(schemas_dir or settings.schemas_dir)

    def load_from_yaml(self, yaml_content: str) -> ContentType:
        """Parse a content type from a YAML string (not validated)."""
        raw = yaml.safe_load(yaml_content)
        if not isinstance(raw, dict):
            raise ValueError("Content type YAML must be a mapping")

        try:
            fields = [_parse_field(f) for f in raw.get("fields") or []]
            return ContentType(
                id=raw["id"],
                name=raw.get("name", raw["id"]),
                description=raw.get("description"),
                fields=fields,
            )
        except KeyError as e:
            raise ValueError(f"Content type YAML is missing {e}") from e
        except (TypeError, ValidationError) as e:
            raise ValueError(f"Invalid content type definition: {e}") from e

    def _candidate_files(self) -> list[Path]:
        if not self._schemas_dir.exists():
            return []
        return sorted(
            list(self._schemas_dir.glob("*.yaml")) + list(self._schemas_dir.glob("*.yml"))
        )

    def load(self, content_type_id: str) -> ContentType:
        """Load a content type from disk by id."""
        for path in self._candidate_files():
            try:
                content = path.read_text()
                raw = yaml.safe_load(content)
            except yaml.YAMLError:
                logger.warning(f"Skipping unreadable content type file {path}")
                continue
            if isinstance(raw, dict) and raw.get("id") == content_type_id:
                content_type = self.load_from_yaml(content)
                self.register(content_type)
                logger.info(f"Loaded content type '{content_type_id}' from {path}")
                return content_type

        raise FileNotFoundError(
            f"No content type '{content_type_id}' found in {self._schemas_dir}"
        )

    def get(self, content_type_id: str) -> ContentType:
        """Get a cached content type or load it from disk."""
        if content_type_id not in self._content_types:
            return self.load(content_type_id)
        return self._content_types[content_type_id]

    def register(self, content_type: ContentType) -> None:
        """Register a content type directly."""
        errors = validate_content_type(content_type)
        if errors:
            raise ValueError(f"Content type validation errors: {errors}")
        self._content_types[content_type.id] = content_type

    def list_ids(self) -> list[str]:
        """List content type ids: registered ones plus those on disk (``_`` files skipped)."""
        ids = list(self._content_types.keys())
        for path in self._candidate_files():
            if path.name.startswith("_"):
                continue
            try:
                raw = yaml.safe_load(path.read_text())
            except yaml.YAMLError:
                continue
            if isinstance(raw, dict) and raw.get("id") and raw["id"] not in ids:
                ids.append(raw["id"])
        return ids
