"""Agent tools and the registry that exposes them to the orchestrator."""

from .base import AgentTool, escape_like, escape_literal, parse_json_array
from .context import ToolContext
from .database_search import DatabaseSearchTool, clamp_limit
from .query_suggestion import SQL_SUGGESTION_KIND, QuerySuggestionTool
from .registry import ToolRegistry, build_default_tools
from .schema_inspector import SchemaInspectorTool
from .sql_runner import SqlRunnerTool

__all__ = [
    "AgentTool",
    "DatabaseSearchTool",
    "QuerySuggestionTool",
    "SQL_SUGGESTION_KIND",
    "SchemaInspectorTool",
    "SqlRunnerTool",
    "ToolContext",
    "ToolRegistry",
    "build_default_tools",
    "clamp_limit",
    "escape_like",
    "escape_literal",
    "parse_json_array",
]
