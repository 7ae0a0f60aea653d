"""Catalog search across tables, views and columns."""

from __future__ import annotations

import logging
import math

from ...errors import ToolExecutionError, ToolInputError
from ..domain.entities import ToolResult
from .base import AgentTool, escape_like, is_number, non_empty_string, parse_json_array
from .context import ToolContext

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 25
MIN_LIMIT = 5
MAX_LIMIT = 100
SAMPLE_COLUMN_LIMIT = 5


def clamp_limit(limit) -> int:
    """Clamp a requested result count into [MIN_LIMIT, MAX_LIMIT]."""
    if not is_number(limit) or not math.isfinite(limit):
        limit = DEFAULT_LIMIT
    return int(min(max(limit, MIN_LIMIT), MAX_LIMIT))


class DatabaseSearchTool(AgentTool):
    """Case-insensitive substring search over catalog object names.

    Tables rank before views, views before columns; within a type, objects
    with more columns come first.
    """

    name = "database_search"
    description = (
        "Fuzzy search for schemas, tables, views, and columns. Use when you need "
        "to discover object names."
    )
    input_schema = (
        '{"type":"object","properties":{"query":{"type":"string","description":'
        '"Search text"},"limit":{"type":"integer","description":'
        '"Maximum number of results"}},"required":["query"]}'
    )

    async def run(self, input: str, context: ToolContext) -> ToolResult:
        if context.connection is None:
            raise ToolExecutionError(
                "Connect to a database before searching metadata.", tool=self.name
            )

        if not input or not input.strip():
            raise ToolInputError(
                "Provide a JSON payload with a search query.", tool=self.name
            )
        args = self.parse_json_object(
            input, "Invalid JSON input for database_search tool."
        )
        query = non_empty_string(args.get("query"))
        if query is None:
            raise ToolInputError(
                "The query field must be a non-empty string.", tool=self.name
            )
        query = query.strip()
        limit = clamp_limit(args.get("limit"))

        result = await context.execute_sql(self._build_query(query, limit))
        if result.error:
            raise ToolExecutionError(result.error, tool=self.name)

        total_matches = (
            int(result.rows[0].get("total_matches") or 0) if result.rows else 0
        )
        results = [
            {
                "type": row.get("type"),
                "schema": row.get("table_schema"),
                "name": row.get("name"),
                "parent": row.get("parent") or None,
                "column_count": int(row.get("column_count") or 0),
                "sample_columns": parse_json_array(row.get("sample_columns")),
            }
            for row in result.rows
        ]

        return ToolResult(
            summary=(
                f'Found {total_matches} objects matching "{query}". '
                f"Showing top {len(results)}."
            ),
            data={
                "query": query,
                "limit": limit,
                "total_matches": total_matches,
                "results": results,
            },
        )

    def _build_query(self, query: str, limit: int) -> str:
        pattern = f"%{escape_like(query)}%"
        return f"""
            WITH objects AS (
              SELECT
                'table' AS type,
                t.table_schema,
                t.table_name AS name,
                COUNT(c.column_name) AS column_count,
                COALESCE(
                  JSON_AGG(c.column_name ORDER BY c.ordinal_position)
                    FILTER (WHERE c.ordinal_position <= {SAMPLE_COLUMN_LIMIT}),
                  '[]'
                ) AS sample_columns,
                NULL::text AS parent
              FROM information_schema.tables t
              LEFT JOIN information_schema.columns c
                ON c.table_schema = t.table_schema
               AND c.table_name = t.table_name
              WHERE t.table_type = 'BASE TABLE'
                AND t.table_schema NOT IN ('pg_catalog', 'information_schema')
                AND (t.table_name ILIKE '{pattern}' OR t.table_schema ILIKE '{pattern}')
              GROUP BY t.table_schema, t.table_name
              UNION ALL
              SELECT
                'view' AS type,
                table_schema,
                table_name,
                0 AS column_count,
                '[]'::json AS sample_columns,
                NULL::text AS parent
              FROM information_schema.views
              WHERE table_schema NOT IN ('pg_catalog', 'information_schema')
                AND (table_name ILIKE '{pattern}' OR table_schema ILIKE '{pattern}')
              UNION ALL
              SELECT
                'column' AS type,
                table_schema,
                column_name,
                0 AS column_count,
                '[]'::json AS sample_columns,
                table_name AS parent
              FROM information_schema.columns
              WHERE table_schema NOT IN ('pg_catalog', 'information_schema')
                AND (column_name ILIKE '{pattern}'
                  OR table_name ILIKE '{pattern}'
                  OR table_schema ILIKE '{pattern}')
            )
            SELECT *,
              COUNT(*) OVER () AS total_matches
            FROM objects
            ORDER BY
              CASE type WHEN 'table' THEN 1 WHEN 'view' THEN 2 ELSE 3 END,
              column_count DESC,
              name
            LIMIT {limit};
        """
