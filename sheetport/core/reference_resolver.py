"""Reference Resolver — second stage of record construction.

Stage one (value transforms) leaves DeferredReference placeholders in the
field map. This module finds all of them, runs one batch of point queries
against the record store, and returns a copy of the record with every
placeholder replaced by a record link. A placeholder with no match fails
the whole record; nothing is retried.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from sheetport.core.config import settings
from sheetport.core.errors import ResolutionError
from sheetport.core.value_transforms import DeferredReference, link

logger = logging.getLogger(__name__)

LookupFn = Callable[[str, str], Awaitable[Optional[str]]]


def find_placeholders(value: Any) -> list[DeferredReference]:
    """Collect DeferredReferences nested anywhere in dicts and lists."""
    if isinstance(value, DeferredReference):
        return [value]
    found: list[DeferredReference] = []
    if isinstance(value, dict):
        for v in value.values():
            found.extend(find_placeholders(v))
    elif isinstance(value, list):
        for v in value:
            found.extend(find_placeholders(v))
    return found


def _substitute(value: Any, resolved: dict[tuple[str, str], str]) -> Any:
    if isinstance(value, DeferredReference):
        return link(resolved[(value.lookup_field, value.lookup_value)])
    if isinstance(value, dict):
        return {k: _substitute(v, resolved) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute(v, resolved) for v in value]
    return value


async def _lookup(
    lookup_fn: LookupFn,
    key: tuple[str, str],
    timeout: float,
) -> Optional[str]:
    try:
        return await asyncio.wait_for(lookup_fn(*key), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Lookup timed out: {key[0]} = {key[1]!r}")
        return None


async def resolve_references(
    record: dict[str, Any],
    lookup_fn: LookupFn,
    timeout: Optional[float] = None,
) -> dict[str, Any]:
    """Replace every DeferredReference in ``record`` with a record link.

    Args:
        record: field id -> value (values may be locale maps or lists).
        lookup_fn: async (field, value) -> record id or None.
        timeout: per-lookup timeout in seconds; a timeout counts as no match.

    Raises:
        ResolutionError: naming every field whose lookup found nothing.
    """
    timeout = settings.lookup_timeout_seconds if timeout is None else timeout

    placeholders_by_field = {
        field_id: find_placeholders(value) for field_id, value in record.items()
    }
    keys = list(dict.fromkeys(
        (p.lookup_field, p.lookup_value)
        for placeholders in placeholders_by_field.values()
        for p in placeholders
    ))
    if not keys:
        return dict(record)

    results = await asyncio.gather(*(_lookup(lookup_fn, key, timeout) for key in keys))
    resolved = {key: rid for key, rid in zip(keys, results) if rid is not None}

    failures = []
    for field_id, placeholders in placeholders_by_field.items():
        for p in placeholders:
            if (p.lookup_field, p.lookup_value) not in resolved:
                failures.append((field_id, p.lookup_field, p.lookup_value))
    if failures:
        raise ResolutionError(failures)

    logger.debug(f"Resolved {len(keys)} lookup(s)")
    return {field_id: _substitute(value, resolved) for field_id, value in record.items()}
