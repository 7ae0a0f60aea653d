"""PostgreSQL client for the active connection.

Wraps a single asyncpg connection. Statements run one at a time through this
handle; callers that need concurrency open their own client.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import asyncpg

from ..errors import DatabaseError, DatabaseNotConnectedError
from .models import (
    ColumnInfo,
    ConnectionConfig,
    DatabaseSchema,
    QueryResult,
    SchemaInfo,
    TableInfo,
    ViewInfo,
)

logger = logging.getLogger(__name__)

SYSTEM_SCHEMAS = ("pg_catalog", "information_schema")

_COLUMNS_QUERY = """
    SELECT c.table_schema, c.table_name, c.column_name, c.data_type,
           c.is_nullable, c.column_default
    FROM information_schema.columns c
    JOIN information_schema.tables t
      ON t.table_schema = c.table_schema
     AND t.table_name = c.table_name
    WHERE t.table_type = 'BASE TABLE'
      AND c.table_schema <> ALL($1::text[])
    ORDER BY c.table_schema, c.table_name, c.ordinal_position
"""

_TABLES_QUERY = """
    SELECT table_schema, table_name
    FROM information_schema.tables
    WHERE table_type = 'BASE TABLE'
      AND table_schema <> ALL($1::text[])
    ORDER BY table_schema, table_name
"""

_VIEWS_QUERY = """
    SELECT table_schema, table_name, view_definition
    FROM information_schema.views
    WHERE table_schema <> ALL($1::text[])
    ORDER BY table_schema, table_name
"""


def _parse_status_count(status: Optional[str]) -> int:
    """Extract the affected row count from a command tag like ``UPDATE 3``."""
    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


class PostgresClient:
    """Async client bound to one PostgreSQL database.

    Usage:
        client = PostgresClient(config)
        await client.connect()

        result = await client.execute_query("SELECT 1 AS one")
        schema = await client.get_schema_metadata()

        await client.disconnect()
    """

    def __init__(self, config: ConnectionConfig, connect_timeout: float = 10.0):
        self.config = config
        self.connect_timeout = connect_timeout
        self._conn: Optional[asyncpg.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None and not self._conn.is_closed()

    async def connect(self) -> None:
        """Open the connection.

        Raises:
            DatabaseError: If the server cannot be reached or rejects the login
        """
        try:
            self._conn = await asyncpg.connect(
                host=self.config.host,
                port=self.config.port,
                database=self.config.database,
                user=self.config.username,
                password=self.config.password,
                ssl="require" if self.config.ssl else None,
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise DatabaseError(
                f"Could not connect to {self.config.name}: connection timed out "
                f"after {self.connect_timeout}s",
                details={"host": self.config.host, "database": self.config.database},
                cause=e,
            )
        except (OSError, asyncpg.PostgresError) as e:
            raise DatabaseError(
                f"Could not connect to {self.config.name}: {e}",
                details={"host": self.config.host, "database": self.config.database},
                cause=e,
            )
        logger.info(
            f"Connected to {self.config.host}:{self.config.port}/{self.config.database}"
        )

    async def disconnect(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info(f"Disconnected from {self.config.name}")

    def _require_connection(self) -> asyncpg.Connection:
        if not self.is_connected:
            raise DatabaseNotConnectedError()
        return self._conn

    async def execute_query(self, sql: str) -> QueryResult:
        """Execute one statement.

        Server-side errors are returned in ``QueryResult.error``; only a
        missing connection raises.
        """
        conn = self._require_connection()
        started = time.monotonic()

        try:
            statement = await conn.prepare(sql)
            records = await statement.fetch()
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            duration = int((time.monotonic() - started) * 1000)
            logger.warning(f"Query failed after {duration}ms: {e}")
            return QueryResult(duration=duration, error=str(e))

        duration = int((time.monotonic() - started) * 1000)
        attributes = statement.get_attributes()
        columns = [
            ColumnInfo(name=attr.name, data_type=attr.type.name)
            for attr in attributes
        ]

        if attributes:
            row_count = len(records)
        else:
            row_count = _parse_status_count(statement.get_statusmsg())

        return QueryResult(
            columns=columns,
            rows=[dict(record) for record in records],
            row_count=row_count,
            duration=duration,
        )

    async def get_schema_metadata(self) -> DatabaseSchema:
        """Read tables, columns and views from information_schema."""
        conn = self._require_connection()
        excluded = list(SYSTEM_SCHEMAS)

        table_rows = await conn.fetch(_TABLES_QUERY, excluded)
        column_rows = await conn.fetch(_COLUMNS_QUERY, excluded)
        view_rows = await conn.fetch(_VIEWS_QUERY, excluded)

        schemas: dict[str, SchemaInfo] = {}
        tables: dict[tuple[str, str], TableInfo] = {}

        def schema_for(name: str) -> SchemaInfo:
            if name not in schemas:
                schemas[name] = SchemaInfo(name=name)
            return schemas[name]

        for row in table_rows:
            table = TableInfo(name=row["table_name"])
            tables[(row["table_schema"], row["table_name"])] = table
            schema_for(row["table_schema"]).tables.append(table)

        for row in column_rows:
            table = tables.get((row["table_schema"], row["table_name"]))
            if table is None:
                continue
            table.columns.append(
                ColumnInfo(
                    name=row["column_name"],
                    data_type=row["data_type"],
                    nullable=row["is_nullable"] == "YES",
                    default_value=row["column_default"],
                )
            )

        for row in view_rows:
            schema_for(row["table_schema"]).views.append(
                ViewInfo(name=row["table_name"], definition=row["view_definition"])
            )

        logger.debug(
            f"Loaded schema metadata: {len(schemas)} schemas, {len(tables)} tables"
        )
        return DatabaseSchema(schemas=list(schemas.values()))

    async def __aenter__(self) -> PostgresClient:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()
