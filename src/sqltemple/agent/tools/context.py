"""Per-run context handed to every tool invocation."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from ...database.models import ConnectionConfig, DatabaseSchema, QueryResult
from ..domain.ports import IDatabaseClient

logger = logging.getLogger(__name__)

SchemaLoader = Callable[[], Awaitable[Optional[DatabaseSchema]]]
SqlExecutor = Callable[[str], Awaitable[QueryResult]]


class ToolContext:
    """Database access for one orchestrator run.

    ``get_schema`` loads the schema at most once per context. A context
    with no ``connection`` means the run is not bound to a database;
    database tools refuse to run in that case.
    """

    def __init__(
        self,
        connection: Optional[ConnectionConfig],
        schema_loader: SchemaLoader,
        sql_executor: SqlExecutor,
    ):
        self.connection = connection
        self._schema_loader = schema_loader
        self._sql_executor = sql_executor
        self._schema: Optional[DatabaseSchema] = None
        self._schema_loaded = False

    @classmethod
    def from_client(
        cls,
        client: IDatabaseClient,
        connection: Optional[ConnectionConfig],
    ) -> ToolContext:
        """Bind a context to a connected database client."""
        return cls(
            connection=connection,
            schema_loader=client.get_schema_metadata,
            sql_executor=client.execute_query,
        )

    async def get_schema(self) -> Optional[DatabaseSchema]:
        if not self._schema_loaded:
            self._schema = await self._schema_loader()
            self._schema_loaded = True
            logger.debug("Schema metadata cached for this run")
        return self._schema

    async def execute_sql(self, sql: str) -> QueryResult:
        return await self._sql_executor(sql)
