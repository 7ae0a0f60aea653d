"""Schema inspection tool: list tables in a schema or describe one table."""

from __future__ import annotations

import json
import logging
from typing import Any

from ...errors import ToolExecutionError
from ..domain.entities import ToolResult
from .base import AgentTool, escape_literal, parse_json_array
from .context import ToolContext

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "public"
TABLE_PREVIEW_LIMIT = 12
COLUMN_PREVIEW_LIMIT = 6


class SchemaInspectorTool(AgentTool):
    """Summarize a schema, or list the columns of a single table."""

    name = "schema_inspector"
    description = (
        "Use this tool to understand the connected database schema, list tables, "
        "or inspect a table's columns."
    )
    input_schema = (
        '{"type":"object","properties":{"schema":{"type":"string","description":'
        '"Schema name"},"table":{"type":"string","description":'
        '"Optional table name to inspect"}}}'
    )

    async def run(self, input: str, context: ToolContext) -> ToolResult:
        if context.connection is None:
            raise ToolExecutionError(
                "Connect to a database before inspecting schemas.", tool=self.name
            )

        args = self._parse_input(input)
        schema_name = (args.get("schema") or "").strip() or DEFAULT_SCHEMA
        table_name = args.get("table")

        if table_name:
            return await self._describe_table(schema_name, table_name, context)
        return await self._describe_schema(schema_name, context)

    def _parse_input(self, raw: str) -> dict[str, Any]:
        # Blank or unparseable input means "no arguments".
        if not raw or not raw.strip():
            return {}
        try:
            parsed = json.loads(raw)
        except ValueError:
            return {}
        if not isinstance(parsed, dict):
            return {}
        return {
            key: parsed[key]
            for key in ("schema", "table")
            if isinstance(parsed.get(key), str)
        }

    async def _describe_schema(
        self, schema_name: str, context: ToolContext
    ) -> ToolResult:
        literal = escape_literal(schema_name)

        count_result = await context.execute_sql(
            f"""
            SELECT COUNT(*) AS count
            FROM information_schema.tables
            WHERE table_type = 'BASE TABLE'
              AND table_schema = '{literal}';
            """
        )
        total_tables = (
            int(count_result.rows[0].get("count") or 0) if count_result.rows else 0
        )

        preview_result = await context.execute_sql(
            f"""
            SELECT
              t.table_name,
              COUNT(c.column_name) AS column_count,
              COALESCE(
                JSON_AGG(c.column_name ORDER BY c.ordinal_position)
                  FILTER (WHERE c.ordinal_position <= {COLUMN_PREVIEW_LIMIT}),
                '[]'
              ) AS sample_columns
            FROM information_schema.tables t
            LEFT JOIN information_schema.columns c
              ON c.table_schema = t.table_schema
             AND c.table_name = t.table_name
            WHERE t.table_type = 'BASE TABLE'
              AND t.table_schema = '{literal}'
            GROUP BY t.table_name
            ORDER BY column_count DESC, t.table_name
            LIMIT {TABLE_PREVIEW_LIMIT};
            """
        )

        tables_preview = [
            {
                "name": row.get("table_name"),
                "column_count": int(row.get("column_count") or 0),
                "columns": parse_json_array(
                    row.get("sample_columns"), limit=COLUMN_PREVIEW_LIMIT
                ),
            }
            for row in preview_result.rows
        ]

        return ToolResult(
            summary=f"Schema {schema_name} exposes {total_tables} tables.",
            data={
                "schema": schema_name,
                "total_tables": total_tables,
                "tables_preview": tables_preview,
            },
        )

    async def _describe_table(
        self, schema_name: str, table_name: str, context: ToolContext
    ) -> ToolResult:
        result = await context.execute_sql(
            f"""
            SELECT
              column_name,
              data_type,
              is_nullable,
              column_default
            FROM information_schema.columns
            WHERE table_schema = '{escape_literal(schema_name)}'
              AND table_name = '{escape_literal(table_name)}'
            ORDER BY ordinal_position;
            """
        )

        columns = [
            {
                "name": row.get("column_name"),
                "type": row.get("data_type"),
                "nullable": row.get("is_nullable") == "YES",
                "default": row.get("column_default") or None,
            }
            for row in result.rows
        ]

        if not columns:
            raise ToolExecutionError(
                f'Table "{table_name}" was not found in schema "{schema_name}" '
                "or has no columns.",
                tool=self.name,
            )

        return ToolResult(
            summary=f"Schema {schema_name}.{table_name} has {len(columns)} columns.",
            data={
                "schema": schema_name,
                "table": table_name,
                "column_count": len(columns),
                "columns": columns,
            },
        )
