"""
Base class and input helpers for agent tools.

Tools receive their arguments as a raw JSON string produced by the model.
Helpers here parse that string and escape values before they are inlined
into catalog queries.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from ...errors import ToolInputError
from ..domain.entities import ToolResult, ToolSpec

if TYPE_CHECKING:
    from .context import ToolContext


class AgentTool(ABC):
    """A named capability the model can invoke.

    Subclasses set ``name``, ``description`` and ``input_schema`` as class
    attributes and implement ``run``. Tools hold no per-run state; all
    run-specific data comes through the ``ToolContext``.
    """

    name: str = ""
    description: str = ""
    input_schema: str = "{}"

    @abstractmethod
    async def run(self, input: str, context: ToolContext) -> ToolResult:
        """Execute the tool.

        Raises:
            ToolInputError: If ``input`` is malformed
            ToolExecutionError: If the tool cannot produce a result
        """
        pass

    @property
    def spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )

    def parse_json_object(self, raw: str, invalid_message: str) -> dict[str, Any]:
        """Parse ``raw`` as a JSON object or raise ToolInputError."""
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ToolInputError(invalid_message, tool=self.name, cause=e)
        if not isinstance(parsed, dict):
            raise ToolInputError(invalid_message, tool=self.name)
        return parsed


def is_number(value: Any) -> bool:
    """True for JSON numbers; booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def non_empty_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def escape_literal(value: str) -> str:
    """Escape a value for use inside a single-quoted SQL literal."""
    return value.replace("'", "''")


def escape_like(value: str) -> str:
    """Escape LIKE wildcards and quotes so search text matches literally."""
    return (
        value.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
        .replace("'", "''")
    )


def parse_json_array(value: Any, limit: Optional[int] = None) -> list[Any]:
    """Coerce a JSON_AGG result (list or JSON text) into a list."""
    items: list[Any] = []
    if isinstance(value, list):
        items = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = json.loads(value)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            items = parsed
    if limit is not None:
        return items[:limit]
    return list(items)
