"""SQL execution tool."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ...errors import ToolInputError
from ..domain.entities import ToolResult
from .base import AgentTool, is_number, non_empty_string
from .context import ToolContext

logger = logging.getLogger(__name__)

MAX_PREVIEW_ROWS = 25


class SqlRunnerTool(AgentTool):
    """Run one statement and return a capped preview of its rows.

    Errors reported by the database are returned in the ``error`` field of
    the payload so the model can read them and adjust its query.
    """

    name = "sql_runner"
    description = (
        "Executes a SQL statement against the active connection. Prefer SELECT "
        "statements unless the user explicitly asks for data changes."
    )
    input_schema = (
        '{"type":"object","properties":{"sql":{"type":"string","description":'
        '"SQL statement to execute"},"limitRows":{"type":"number","description":'
        '"Optional row limit for previews"}},"required":["sql"]}'
    )

    async def run(self, input: str, context: ToolContext) -> ToolResult:
        sql, limit_rows = self._parse_input(input)

        result = await context.execute_sql(sql)
        if result.error:
            logger.warning(f"sql_runner statement failed: {result.error}")

        cap = limit_rows if limit_rows is not None else MAX_PREVIEW_ROWS
        rows = list(result.rows[:cap]) if isinstance(result.rows, list) else []

        return ToolResult(
            summary=(
                f"Query executed in {result.duration}ms with {result.row_count} rows."
            ),
            data={
                "sql": sql,
                "duration": result.duration,
                "row_count": result.row_count,
                "columns": [
                    {"name": column.name, "type": column.data_type}
                    for column in result.columns
                ],
                "rows": rows,
                "truncated": cap < (result.row_count or 0),
                "error": result.error,
            },
        )

    def _parse_input(self, raw: str) -> tuple[str, Optional[int]]:
        if not raw or not raw.strip():
            raise ToolInputError(
                "Input must be a JSON string containing the sql field.",
                tool=self.name,
            )

        args: dict[str, Any] = self.parse_json_object(
            raw, "Invalid JSON input for sql_runner tool."
        )
        sql = non_empty_string(args.get("sql"))
        if sql is None:
            raise ToolInputError("sql must be a non-empty string.", tool=self.name)

        limit = args.get("limitRows")
        limit_rows = None
        if is_number(limit) and limit > 0:
            limit_rows = int(min(limit, MAX_PREVIEW_ROWS))

        return sql, limit_rows
