"""Tool for handing a finished query to the user."""

from __future__ import annotations

from ...errors import ToolInputError
from ..domain.entities import ToolResult
from .base import AgentTool, non_empty_string
from .context import ToolContext

SQL_SUGGESTION_KIND = "sql_suggestion"


class QuerySuggestionTool(AgentTool):
    """Package a SQL query for the user; never touches the database."""

    name = "query_suggestion"
    description = (
        "Use this tool to present a finished SQL query to the user. Provide JSON "
        "with a `sql` string and optional `description`."
    )
    input_schema = (
        '{"type":"object","properties":{"sql":{"type":"string","description":'
        '"Full SQL text to recommend"},"description":{"type":"string",'
        '"description":"Optional short explanation"}},"required":["sql"]}'
    )

    async def run(self, input: str, context: ToolContext) -> ToolResult:
        if not input or not input.strip():
            raise ToolInputError(
                "Input must include the SQL to share with the user.", tool=self.name
            )

        args = self.parse_json_object(
            input, "Invalid JSON input for query_suggestion tool."
        )
        sql = non_empty_string(args.get("sql"))
        if sql is None:
            raise ToolInputError(
                "Missing SQL. Provide a non-empty sql string.", tool=self.name
            )

        description = args.get("description")
        if isinstance(description, str):
            description = description.strip()
        else:
            description = None

        return ToolResult(
            summary="Prepared a SQL query suggestion for the user.",
            data={
                "type": SQL_SUGGESTION_KIND,
                "sql": sql.strip(),
                "description": description,
            },
            kind=SQL_SUGGESTION_KIND,
        )
