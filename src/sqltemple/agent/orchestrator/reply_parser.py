"""Lenient parsing of model replies into thought, action and final answer."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class ParsedReply:
    """Structured view of one model reply.

    ``action_input`` is always a string; object inputs are serialized to JSON.
    """

    thought: str = ""
    action_name: Optional[str] = None
    action_input: Optional[str] = None
    final_answer: Optional[str] = None


def _load_json_block(content: str) -> Optional[dict[str, Any]]:
    """Parse the whole reply, then the outermost ``{...}`` substring."""
    try:
        parsed = json.loads(content)
    except ValueError:
        first = content.find("{")
        last = content.rfind("}")
        if first == -1 or last <= first:
            return None
        try:
            parsed = json.loads(content[first : last + 1])
        except ValueError:
            return None
    return parsed if isinstance(parsed, dict) else None


def _first_string(*candidates: Any) -> Optional[str]:
    for candidate in candidates:
        if isinstance(candidate, str):
            return candidate
    return None


def parse_reply(raw: Optional[str]) -> ParsedReply:
    """Interpret a model reply.

    Falls back to treating the whole reply as both thought and final answer
    when no JSON object can be recovered. An empty reply yields an empty
    thought and an empty final answer.
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        return ParsedReply(thought="", final_answer="")

    parsed = _load_json_block(trimmed)
    if parsed is None:
        logger.warning("Model reply was not JSON; treating it as a final answer")
        return ParsedReply(thought=trimmed, final_answer=trimmed)

    action = parsed.get("action")
    if not isinstance(action, dict):
        action = {}

    thought = _first_string(parsed.get("thought"), parsed.get("reasoning")) or ""
    action_name = _first_string(parsed.get("actionName"), action.get("name"))

    action_input = _first_string(parsed.get("actionInput"), action.get("input"))
    if action_input is None and isinstance(action.get("input"), (dict, list)):
        action_input = json.dumps(action["input"])

    final_answer = _first_string(parsed.get("finalAnswer"), parsed.get("answer"))

    return ParsedReply(
        thought=thought,
        action_name=action_name or None,
        action_input=action_input or None,
        final_answer=final_answer,
    )
