"""Import Engine — turns accepted mappings + rows into stored records.

Per row:
1. Build the field map (value transforms; lookups become placeholders)
2. Apply default values
3. Resolve placeholders against the record store (one batch per row)
4. Create the record, or update it when ``upsert_field`` matches one
5. Publish if configured

Row failures are isolated: they are recorded as ImportRowErrors and the
loop moves on. Cancellation is checked between rows only.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from sheetport.core.content_types import ContentTypeRegistry
from sheetport.core.errors import ResolutionError, TransformError
from sheetport.core.models import (
    ContentRow,
    ContentType,
    ImportAction,
    ImportConfig,
    ImportedRecord,
    ImportResult,
    ImportRowError,
    RecordStatus,
)
from sheetport.core.record_store import RecordStore, generate_id, lookup_text
from sheetport.core.reference_resolver import resolve_references
from sheetport.core.row_validator import ROW_NUMBER_OFFSET
from sheetport.core.tabular_reader import parse_file
from sheetport.core.value_transforms import transform_value

logger = logging.getLogger(__name__)


@dataclass
class ImportStats:
    """Tracks import statistics."""
    total_processed: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0


def build_record_fields(
    row: ContentRow,
    config: ImportConfig,
    content_type: ContentType,
) -> dict[str, Any]:
    """Stage one: map a row to ``{field_id: {locale: value}}``.

    Empty cells are skipped. When several mappings target the same field,
    the last one wins. Raises TransformError for malformed values.
    """
    fields: dict[str, Any] = {}
    locale = config.locale

    for mapping in config.field_mappings:
        value = row.get(mapping.source_field)
        if value is None or value == "":
            continue

        field_def = content_type.get_field(mapping.target_field)
        if field_def is None:
            logger.debug(
                f"Field '{mapping.target_field}' not in content type "
                f"'{content_type.id}', passing value through"
            )
            fields[mapping.target_field] = {
                locale: value.strip() if isinstance(value, str) else value
            }
            continue

        fields[mapping.target_field] = {locale: transform_value(value, field_def)}

    for field_id, default in config.default_values.items():
        if field_id not in fields:
            fields[field_id] = {locale: default}

    return fields


async def _find_existing(
    fields: dict[str, Any],
    config: ImportConfig,
    store: RecordStore,
) -> Optional[str]:
    if not config.upsert_field or config.upsert_field not in fields:
        return None
    key = lookup_text(fields[config.upsert_field].get(config.locale))
    if key is None:
        return None
    return await store.find_record_id(config.upsert_field, key, config.content_type_id)


async def import_row(
    row: ContentRow,
    row_number: int,
    config: ImportConfig,
    content_type: ContentType,
    store: RecordStore,
) -> ImportedRecord:
    """Build, resolve and persist a single row."""
    fields = build_record_fields(row, config, content_type)
    fields = await resolve_references(fields, store.find_record_id)

    existing_id = await _find_existing(fields, config, store)
    if existing_id:
        record_id = await store.update_record(existing_id, fields)
        action = ImportAction.UPDATED
    else:
        record_id = await store.create_record(config.content_type_id, fields)
        action = ImportAction.CREATED

    status = RecordStatus.DRAFT
    if config.publish_immediately:
        await store.publish_record(record_id)
        status = RecordStatus.PUBLISHED

    return ImportedRecord(
        row=row_number,
        record_id=record_id,
        content_type=config.content_type_id,
        action=action,
        status=status,
    )


async def run_import(
    rows: list[ContentRow],
    config: ImportConfig,
    content_type: ContentType,
    store: RecordStore,
    cancel_event: Optional[asyncio.Event] = None,
) -> ImportResult:
    """Import all rows, isolating per-row failures."""
    import_run_id = generate_id("ir_")
    stats = ImportStats()
    errors: list[ImportRowError] = []
    records: list[ImportedRecord] = []
    status = "completed"

    logger.info(
        f"Import {import_run_id}: {len(rows)} rows into '{config.content_type_id}'"
    )

    for i, row in enumerate(rows):
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Import {import_run_id} cancelled after {stats.total_processed} rows")
            status = "cancelled"
            break

        row_number = i + ROW_NUMBER_OFFSET
        try:
            record = await import_row(row, row_number, config, content_type, store)
        except (TransformError, ResolutionError) as e:
            stats.failed += 1
            errors.append(ImportRowError(row=row_number, message=str(e), details=type(e).__name__))
        except Exception as e:
            logger.error(f"Row {row_number} failed to persist: {e}")
            stats.failed += 1
            errors.append(ImportRowError(row=row_number, message=str(e), details=type(e).__name__))
        else:
            records.append(record)
            if record.action == ImportAction.UPDATED:
                stats.updated += 1
            else:
                stats.created += 1

        stats.total_processed += 1

    logger.info(
        f"Import {import_run_id} {status}: {stats.created} created, "
        f"{stats.updated} updated, {stats.failed} failed"
    )
    return ImportResult(
        import_run_id=import_run_id,
        status=status,
        success=stats.failed == 0 and status == "completed",
        total_processed=stats.total_processed,
        created=stats.created,
        updated=stats.updated,
        failed=stats.failed,
        errors=errors,
        records=records,
    )


async def import_file(
    file_path: Path,
    config: ImportConfig,
    registry: ContentTypeRegistry,
    store: RecordStore,
    cancel_event: Optional[asyncio.Event] = None,
) -> ImportResult:
    """Parse a file and import its rows; schema problems fail the whole run."""
    try:
        content_type = registry.get(config.content_type_id)
        parsed = parse_file(file_path)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Import of {file_path.name} failed: {e}")
        return ImportResult(
            import_run_id=generate_id("ir_"),
            status="failed",
            success=False,
            errors=[ImportRowError(row=0, message=f"Import failed: {e}")],
        )

    return await run_import(parsed.rows, config, content_type, store, cancel_event)
