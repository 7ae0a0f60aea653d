"""
Tool Executor.

Runs a single tool call and turns the outcome into observation text.
Tool failures never escape: they are reported back to the model.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ...errors import error_message
from ..tools.base import AgentTool
from ..tools.context import ToolContext

logger = logging.getLogger(__name__)


@dataclass
class ToolOutcome:
    """Observation produced by one tool call.

    Attributes:
        output: Full observation text shown in the event stream
        note: Short text recorded in the scratchpad
        result_kind: Tool result kind (success only)
        result_data: Tool result payload (success only)
        succeeded: Whether the tool returned normally
    """

    output: str
    note: str
    result_kind: Optional[str] = None
    result_data: Optional[dict[str, Any]] = None
    succeeded: bool = True


def format_observation(summary: str, data: Optional[dict[str, Any]]) -> str:
    """``summary`` followed by the payload pretty-printed as JSON."""
    return f"{summary}\n{json.dumps(data or {}, indent=2, default=str)}"


class ToolExecutor:
    """Executes tool calls with error handling.

    Usage:
        executor = ToolExecutor()
        outcome = await executor.execute(tool, input, context)
    """

    async def execute(
        self,
        tool: AgentTool,
        tool_input: str,
        context: ToolContext,
    ) -> ToolOutcome:
        logger.debug(f"Executing tool: {tool.name}")

        try:
            result = await tool.run(tool_input, context)
        except Exception as e:
            message = error_message(e)
            logger.warning(f"Tool {tool.name} failed: {message}")
            return ToolOutcome(
                output=f"Tool failed: {message}",
                note=message,
                succeeded=False,
            )

        logger.debug(f"Tool {tool.name} result: {result.summary}")
        return ToolOutcome(
            output=format_observation(result.summary, result.data),
            note=result.summary,
            result_kind=result.kind,
            result_data=result.data,
        )
