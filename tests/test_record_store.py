"""Tests for the NebulaGraph record store — mocked execute."""

import asyncio
import json
from unittest.mock import MagicMock, patch

import pytest

from sheetport.core.record_store import (
    NebulaRecordStore,
    _escape,
    _field_value_statements,
    generate_id,
    lookup_text,
)
from sheetport.core.value_transforms import DeferredReference, link


def _result(rows: list[list[str]]) -> MagicMock:
    """Fake ResultSet whose cells answer as_string()."""
    result = MagicMock()
    result.row_size.return_value = len(rows)

    def row_values(i):
        cells = []
        for value in rows[i]:
            cell = MagicMock()
            cell.as_string.return_value = value
            cells.append(cell)
        return cells

    result.row_values.side_effect = row_values
    return result


class TestHelpers:
    def test_escape(self):
        assert _escape("it's") == "'it\\'s'"
        assert _escape("a\\b") == "'a\\\\b'"
        assert _escape("line\nbreak") == "'line\\nbreak'"
        assert _escape(None) == "''"

    def test_generate_id(self):
        rid = generate_id("rec_")
        assert rid.startswith("rec_")
        assert len(rid) == 36
        assert generate_id("rec_") != rid

    def test_lookup_text(self):
        assert lookup_text("abc") == "abc"
        assert lookup_text(5.0) == "5"
        assert lookup_text(True) == "true"
        assert lookup_text(12) == "12"
        assert lookup_text({"lat": 1, "lon": 2}) is None
        assert lookup_text(["a"]) is None

    def test_field_value_statements_skip_structured_values(self):
        fields = {
            "title": {"en-US": "Hello"},
            "author": {"en-US": link("rec_1")},
            "tags": {"en-US": ["a", "b"]},
        }
        statements = _field_value_statements("rec_9", "article", fields)
        assert len(statements) == 2
        assert "'title'" in statements[0]
        assert "'Hello'" in statements[0]
        assert statements[1].startswith("INSERT EDGE HAS_FIELD()")


class TestFindRecordId:
    @patch.object(NebulaRecordStore, "execute")
    def test_found(self, mock_exec):
        mock_exec.return_value = _result([["rec_1"]])
        store = NebulaRecordStore()
        assert store.find_record_id_blocking("slug", "my-post", "article") == "rec_1"
        ngql = mock_exec.call_args[0][0]
        assert ngql.startswith("LOOKUP ON RecordField WHERE")
        assert "RecordField.field_id == 'slug'" in ngql
        assert "RecordField.value_text == 'my-post'" in ngql
        assert "RecordField.content_type == 'article'" in ngql

    @patch.object(NebulaRecordStore, "execute")
    def test_not_found(self, mock_exec):
        mock_exec.return_value = _result([])
        assert NebulaRecordStore().find_record_id_blocking("email", "x@example.com") is None
        assert "content_type" not in mock_exec.call_args[0][0]


class TestCreateRecord:
    @patch.object(NebulaRecordStore, "execute")
    def test_inserts_record_and_field_vertices(self, mock_exec):
        fields = {"title": {"en-US": "Hello"}, "views": {"en-US": 3}}
        record_id = NebulaRecordStore().create_record_blocking("article", fields)

        statements = [c[0][0] for c in mock_exec.call_args_list]
        assert record_id.startswith("rec_")
        assert statements[0].startswith("INSERT VERTEX Record(")
        assert _escape(json.dumps(fields)) in statements[0]
        assert sum(s.startswith("INSERT VERTEX RecordField") for s in statements) == 2
        assert sum(s.startswith("INSERT EDGE HAS_FIELD") for s in statements) == 2

    @patch.object(NebulaRecordStore, "execute")
    def test_rejects_unresolved_placeholders(self, mock_exec):
        fields = {"author": {"en-US": DeferredReference("slug", "x")}}
        with pytest.raises(ValueError):
            NebulaRecordStore().create_record_blocking("article", fields)
        mock_exec.assert_not_called()


class TestUpdateRecord:
    @patch.object(NebulaRecordStore, "execute")
    def test_replaces_field_vertices(self, mock_exec):
        mock_exec.side_effect = [
            _result([["article"]]),          # FETCH content_type
            _result([]),                     # UPDATE
            _result([["rf_a"], ["rf_b"]]),   # LOOKUP owned RecordFields
            _result([]),                     # DELETE
            _result([]),                     # INSERT RecordField
            _result([]),                     # INSERT EDGE
        ]
        store = NebulaRecordStore()
        assert store.update_record_blocking("rec_1", {"title": {"en-US": "New"}}) == "rec_1"

        statements = [c[0][0] for c in mock_exec.call_args_list]
        assert statements[1].startswith("UPDATE VERTEX ON Record 'rec_1'")
        assert statements[3] == "DELETE VERTEX 'rf_a', 'rf_b' WITH EDGE;"
        assert "'New'" in statements[4]

    @patch.object(NebulaRecordStore, "execute")
    def test_missing_record(self, mock_exec):
        mock_exec.return_value = _result([])
        with pytest.raises(LookupError):
            NebulaRecordStore().update_record_blocking("rec_gone", {"title": {"en-US": "x"}})


class TestPublish:
    @patch.object(NebulaRecordStore, "execute")
    def test_sets_status(self, mock_exec):
        NebulaRecordStore().publish_record_blocking("rec_1")
        ngql = mock_exec.call_args[0][0]
        assert "SET status = 'published'" in ngql


class TestConnection:
    def test_execute_requires_connect(self):
        with pytest.raises(RuntimeError):
            NebulaRecordStore().execute("SHOW TAGS;")

    def test_disconnected_store_is_unhealthy(self):
        assert NebulaRecordStore().check_connection() is False

    @patch("sheetport.core.record_store.ConnectionPool")
    def test_connect_failure(self, mock_pool_cls):
        mock_pool_cls.return_value.init.return_value = False
        store = NebulaRecordStore(host="graphd", port=9669)
        with pytest.raises(RuntimeError, match="graphd:9669"):
            store.connect()
        assert store.connected is False

    @patch("sheetport.core.record_store.ConnectionPool")
    def test_connect_and_close(self, mock_pool_cls):
        store = NebulaRecordStore()
        store.connect()
        assert store.connected
        store.close()
        mock_pool_cls.return_value.close.assert_called_once()
        assert store.connected is False

    @patch("sheetport.core.record_store.ConnectionPool")
    def test_execute_uses_space(self, mock_pool_cls):
        session = MagicMock()
        session.execute.return_value.is_succeeded.return_value = True
        mock_pool_cls.return_value.session_context.return_value.__enter__.return_value = session

        store = NebulaRecordStore(space="content")
        store.connect()
        store.execute("SHOW TAGS;")

        statements = [c[0][0] for c in session.execute.call_args_list]
        assert statements == ["USE content;", "SHOW TAGS;"]


class TestNebulaRecordStoreAsync:
    @patch.object(NebulaRecordStore, "execute")
    def test_async_wrappers(self, mock_exec):
        mock_exec.return_value = _result([["rec_7"]])
        store = NebulaRecordStore()
        assert asyncio.run(store.find_record_id("slug", "a")) == "rec_7"
