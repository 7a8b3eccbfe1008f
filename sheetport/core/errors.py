"""Exception types raised by the mapping, transform and resolution stages."""

from typing import Any


class MappingError(Exception):
    """The mapping oracle failed or answered with something unusable.

    Never escapes ``suggest_mappings``; it always degrades to the fallback
    matcher.
    """


class TransformError(ValueError):
    """A raw cell value cannot be coerced to its target field kind."""

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f'Field "{field}": {reason} (value: {value!r})')


class ResolutionError(LookupError):
    """One or more lookup expressions matched no record.

    ``failures`` holds ``(field_id, lookup_field, lookup_value)`` tuples.
    """

    def __init__(self, failures: list[tuple[str, str, str]]):
        self.failures = failures
        details = "; ".join(
            f'{field_id}: no record found where {lookup_field} = "{lookup_value}"'
            for field_id, lookup_field, lookup_value in failures
        )
        super().__init__(f"Lookup failed: {details}")
