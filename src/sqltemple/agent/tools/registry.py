"""
Tool Registry.

Holds the fixed set of tools the agent may call, keyed by name. The
registry is built once and never changes afterwards.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from ..domain.entities import ToolSpec
from .base import AgentTool
from .database_search import DatabaseSearchTool
from .query_suggestion import QuerySuggestionTool
from .schema_inspector import SchemaInspectorTool
from .sql_runner import SqlRunnerTool

logger = logging.getLogger(__name__)


def build_default_tools() -> list[AgentTool]:
    """Return the standard tool set in prompt order."""
    return [
        SchemaInspectorTool(),
        SqlRunnerTool(),
        QuerySuggestionTool(),
        DatabaseSearchTool(),
    ]


class ToolRegistry:
    """Immutable name-to-tool mapping.

    Usage:
        registry = ToolRegistry(build_default_tools())

        tool = registry.get("sql_runner")
        specs = registry.specs()
    """

    def __init__(self, tools: Optional[Iterable[AgentTool]] = None):
        if tools is None:
            tools = build_default_tools()

        by_name: dict[str, AgentTool] = {}
        for tool in tools:
            if tool.name in by_name:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            by_name[tool.name] = tool

        self._tools: Mapping[str, AgentTool] = MappingProxyType(by_name)
        logger.info(f"Tool registry loaded {len(by_name)} tools")

    @property
    def tools(self) -> Mapping[str, AgentTool]:
        return self._tools

    def get(self, name: str) -> Optional[AgentTool]:
        """Look up a tool; unknown names return None."""
        return self._tools.get(name)

    def specs(self) -> list[ToolSpec]:
        return [tool.spec for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
