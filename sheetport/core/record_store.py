"""Record Store — persists finished records in NebulaGraph.

Storage layout (space ``settings.nebula_space``):

    Record(content_type, status, fields, created_at, updated_at)
        fields is the JSON-encoded field map ({field_id: {locale: value}})
    RecordField(record_id, content_type, field_id, locale, value_text)
        one vertex per scalar field value, indexed for point lookups
    HAS_FIELD: Record -> RecordField

VID format: FIXED_STRING(64). IDs are prefix + 32-char UUID7 hex.
nGQL rules: single-line statements, string values must be escaped.
The nebula3 client is blocking, so the async store methods run each
statement batch in a worker thread.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from nebula3.Config import Config as NebulaConfig
from nebula3.data.ResultSet import ResultSet
from nebula3.gclient.net import ConnectionPool
from uuid_extensions import uuid7

from sheetport.core.config import settings
from sheetport.core.models import RecordStatus
from sheetport.core.reference_resolver import find_placeholders

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    "CREATE TAG IF NOT EXISTS Record(content_type string, status string, fields string, "
    "created_at datetime, updated_at datetime);",
    "CREATE TAG IF NOT EXISTS RecordField(record_id string, content_type string, "
    "field_id string, locale string, value_text string);",
    "CREATE EDGE IF NOT EXISTS HAS_FIELD();",
    "CREATE TAG INDEX IF NOT EXISTS record_field_lookup ON "
    "RecordField(field_id(64), value_text(256));",
    "CREATE TAG INDEX IF NOT EXISTS record_field_owner ON RecordField(record_id(64));",
]


class RecordStore(Protocol):
    async def find_record_id(
        self, field_id: str, value: str, content_type_id: Optional[str] = None,
    ) -> Optional[str]: ...

    async def create_record(self, content_type_id: str, fields: dict[str, Any]) -> str: ...

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> str: ...

    async def publish_record(self, record_id: str) -> None: ...


# ---------------------------------------------------------------------------
# nGQL helpers
# ---------------------------------------------------------------------------

def generate_id(prefix: str = "") -> str:
    """Prefixed UUID v7 hex string, e.g. ``rec_01926f4e…`` (fits 64 chars)."""
    uid = uuid7().hex
    return f"{prefix}{uid}" if prefix else uid


def _escape(value: Any) -> str:
    """Escape a value for nGQL insertion (single-quoted)."""
    if value is None:
        return "''"
    s = str(value)
    s = s.replace("\\", "\\\\")
    s = s.replace("'", "\\'")
    s = s.replace("\n", "\\n")
    s = s.replace("\r", "\\r")
    return f"'{s}'"


def _fmt_dt(dt: datetime) -> str:
    """Format a Python datetime as an nGQL datetime literal."""
    return f'datetime("{dt.strftime("%Y-%m-%dT%H:%M:%S.%f")}")'


def lookup_text(value: Any) -> Optional[str]:
    """Text stored for point lookups; None for values that are not scalars."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def _field_value_statements(
    record_id: str,
    content_type_id: str,
    fields: dict[str, Any],
) -> list[str]:
    """INSERT statements for the RecordField vertices of a record."""
    statements = []
    for field_id, locales in fields.items():
        if not isinstance(locales, dict):
            continue
        for locale, value in locales.items():
            text = lookup_text(value)
            if text is None:
                continue
            rf_id = generate_id("rf_")
            statements.append(
                f'INSERT VERTEX RecordField(record_id, content_type, field_id, locale, value_text) '
                f'VALUES {_escape(rf_id)}:({_escape(record_id)}, {_escape(content_type_id)}, '
                f'{_escape(field_id)}, {_escape(locale)}, {_escape(text)});'
            )
            statements.append(
                f'INSERT EDGE HAS_FIELD() VALUES {_escape(record_id)}->{_escape(rf_id)}:();'
            )
    return statements


def _check_no_placeholders(fields: dict[str, Any]) -> None:
    if find_placeholders(fields):
        raise ValueError("Record still contains unresolved lookup references")


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class NebulaRecordStore:
    """RecordStore backed by a NebulaGraph connection pool.

    ``connect()`` once at startup and ``close()`` at shutdown. The nebula3
    client is blocking, so each async method runs its statement batch in a
    worker thread.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        space: Optional[str] = None,
        pool_size: int = 10,
    ):
        self.host = host or settings.nebula_graphd_host
        self.port = port or settings.nebula_graphd_port
        self.space = space or settings.nebula_space
        self.pool_size = pool_size
        self._pool: Optional[ConnectionPool] = None

    @property
    def connected(self) -> bool:
        return self._pool is not None

    def connect(self) -> None:
        config = NebulaConfig()
        config.max_connection_pool_size = self.pool_size
        pool = ConnectionPool()
        if not pool.init([(self.host, self.port)], config):
            raise RuntimeError(f"Failed to connect to NebulaGraph at {self.host}:{self.port}")
        self._pool = pool
        logger.info(f"Record store connected to {self.host}:{self.port} (space {self.space})")

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None
            logger.info("Record store connection closed")

    def execute(self, ngql: str) -> ResultSet:
        """Run one nGQL statement in the store's space."""
        if self._pool is None:
            raise RuntimeError("Record store is not connected")
        with self._pool.session_context(settings.nebula_user, settings.nebula_password) as session:
            for statement in (f"USE {self.space};", ngql):
                result = session.execute(statement)
                if not result.is_succeeded():
                    raise RuntimeError(f"nGQL failed: {result.error_msg()} ({statement})")
        return result

    def ensure_schema(self) -> None:
        """Create the Record/RecordField tags, edge and indexes if missing."""
        for statement in SCHEMA_STATEMENTS:
            self.execute(statement)
        logger.info("Record store schema ensured")

    def check_connection(self) -> bool:
        if not self.connected:
            return False
        try:
            self.execute("SHOW TAGS;")
        except Exception as e:
            logger.warning(f"Record store health check failed: {e}")
            return False
        return True

    # -- blocking operations ------------------------------------------------

    def find_record_id_blocking(
        self,
        field_id: str,
        value: str,
        content_type_id: Optional[str] = None,
    ) -> Optional[str]:
        conditions = [
            f"RecordField.field_id == {_escape(field_id)}",
            f"RecordField.value_text == {_escape(value)}",
        ]
        if content_type_id:
            conditions.append(f"RecordField.content_type == {_escape(content_type_id)}")
        result = self.execute(
            f'LOOKUP ON RecordField WHERE {" AND ".join(conditions)} '
            f'YIELD RecordField.record_id AS rid | LIMIT 1;'
        )
        if result.row_size() == 0:
            return None
        return result.row_values(0)[0].as_string()

    def create_record_blocking(self, content_type_id: str, fields: dict[str, Any]) -> str:
        _check_no_placeholders(fields)
        record_id = generate_id("rec_")
        now = datetime.now(timezone.utc)
        self.execute(
            f'INSERT VERTEX Record(content_type, status, fields, created_at, updated_at) '
            f'VALUES {_escape(record_id)}:({_escape(content_type_id)}, '
            f'{_escape(RecordStatus.DRAFT.value)}, {_escape(json.dumps(fields))}, '
            f'{_fmt_dt(now)}, {_fmt_dt(now)});'
        )
        for statement in _field_value_statements(record_id, content_type_id, fields):
            self.execute(statement)
        return record_id

    def update_record_blocking(self, record_id: str, fields: dict[str, Any]) -> str:
        _check_no_placeholders(fields)
        fetched = self.execute(
            f'FETCH PROP ON Record {_escape(record_id)} YIELD Record.content_type AS ct;'
        )
        if fetched.row_size() == 0:
            raise LookupError(f"Record not found: {record_id}")
        content_type_id = fetched.row_values(0)[0].as_string()

        now = datetime.now(timezone.utc)
        self.execute(
            f'UPDATE VERTEX ON Record {_escape(record_id)} '
            f'SET fields = {_escape(json.dumps(fields))}, updated_at = {_fmt_dt(now)};'
        )

        # Field vertices are replaced wholesale.
        owned = self.execute(
            f'LOOKUP ON RecordField WHERE RecordField.record_id == {_escape(record_id)} '
            f'YIELD id(vertex) AS vid;'
        )
        old_ids = [owned.row_values(i)[0].as_string() for i in range(owned.row_size())]
        if old_ids:
            self.execute(f'DELETE VERTEX {", ".join(_escape(v) for v in old_ids)} WITH EDGE;')

        for statement in _field_value_statements(record_id, content_type_id, fields):
            self.execute(statement)
        return record_id

    def publish_record_blocking(self, record_id: str) -> None:
        now = datetime.now(timezone.utc)
        self.execute(
            f'UPDATE VERTEX ON Record {_escape(record_id)} '
            f'SET status = {_escape(RecordStatus.PUBLISHED.value)}, updated_at = {_fmt_dt(now)};'
        )

    # -- RecordStore --------------------------------------------------------

    async def find_record_id(
        self, field_id: str, value: str, content_type_id: Optional[str] = None,
    ) -> Optional[str]:
        return await asyncio.to_thread(
            self.find_record_id_blocking, field_id, value, content_type_id,
        )

    async def create_record(self, content_type_id: str, fields: dict[str, Any]) -> str:
        return await asyncio.to_thread(self.create_record_blocking, content_type_id, fields)

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> str:
        return await asyncio.to_thread(self.update_record_blocking, record_id, fields)

    async def publish_record(self, record_id: str) -> None:
        await asyncio.to_thread(self.publish_record_blocking, record_id)
