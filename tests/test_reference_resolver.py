"""Tests for the reference resolver — lookup placeholders → record links."""

import asyncio

import pytest

from sheetport.core.errors import ResolutionError
from sheetport.core.reference_resolver import find_placeholders, resolve_references
from sheetport.core.value_transforms import DeferredReference, link


def _lookup_table(table: dict, calls: list = None):
    async def lookup(field, value):
        if calls is not None:
            calls.append((field, value))
        return table.get((field, value))
    return lookup


class TestFindPlaceholders:
    def test_nested(self):
        ref = DeferredReference("slug", "a")
        record = {"author": {"en-US": ref}, "list": [{"x": [ref]}], "title": "t"}
        assert find_placeholders(record) == [ref, ref]

    def test_none(self):
        assert find_placeholders({"title": {"en-US": "hello"}}) == []


class TestResolveReferences:
    def test_resolves_placeholder(self):
        record = {
            "title": {"en-US": "Hello"},
            "author": {"en-US": DeferredReference("email", "jane@example.com")},
        }
        lookup = _lookup_table({("email", "jane@example.com"): "rec_1"})

        result = asyncio.run(resolve_references(record, lookup))

        assert result["author"] == {"en-US": link("rec_1")}
        assert result["title"] == {"en-US": "Hello"}
        assert find_placeholders(result) == []

    def test_input_not_mutated(self):
        ref = DeferredReference("slug", "a")
        record = {"author": {"en-US": ref}}
        asyncio.run(resolve_references(record, _lookup_table({("slug", "a"): "r"})))
        assert record["author"]["en-US"] is ref

    def test_no_placeholders_skips_lookups(self):
        calls = []
        record = {"title": {"en-US": "x"}}
        result = asyncio.run(resolve_references(record, _lookup_table({}, calls)))
        assert result == record
        assert calls == []

    def test_duplicate_lookups_queried_once(self):
        calls = []
        ref = DeferredReference("slug", "same")
        record = {"a": {"en-US": ref}, "b": {"en-US": ref}}
        result = asyncio.run(
            resolve_references(record, _lookup_table({("slug", "same"): "r9"}, calls))
        )
        assert calls == [("slug", "same")]
        assert result["a"] == result["b"] == {"en-US": link("r9")}

    def test_failure_lists_every_unresolved_field(self):
        record = {
            "author": {"en-US": DeferredReference("email", "nobody@example.com")},
            "editor": {"en-US": DeferredReference("email", "ghost@example.com")},
            "category": {"en-US": DeferredReference("slug", "news")},
        }
        lookup = _lookup_table({("slug", "news"): "cat_1"})

        with pytest.raises(ResolutionError) as exc:
            asyncio.run(resolve_references(record, lookup))

        failed_fields = [f[0] for f in exc.value.failures]
        assert failed_fields == ["author", "editor"]
        assert 'no record found where email = "nobody@example.com"' in str(exc.value)

    def test_timeout_counts_as_no_match(self):
        async def slow_lookup(field, value):
            await asyncio.sleep(1)
            return "late"

        record = {"author": {"en-US": DeferredReference("slug", "x")}}
        with pytest.raises(ResolutionError):
            asyncio.run(resolve_references(record, slow_lookup, timeout=0.01))
