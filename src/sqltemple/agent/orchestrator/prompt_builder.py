"""
Prompt Builder for Agent Orchestrator.

Renders the system prompt and the per-step user prompt:
- Conversation transcript from session history
- The user's current intent
- Tool catalogue (name, description, input schema)
- Scratchpad of earlier steps in this run
- Response format instructions
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ..domain.entities import AgentMessage, MessageRole, ToolSpec

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are SQLTemple's autonomous database co-pilot.
- You understand PostgreSQL schemas, SQL, and data workflows.
- You can reason using tools and must only execute the minimum SQL needed.
- Always double-check destructive operations before running them.
- Prefer concise, actionable language and return answers tailored to data engineers."""

RESPONSE_INSTRUCTIONS = """Respond strictly as compact JSON with this shape:
{
  "thought": "short reasoning here",
  "action": { "name": "<tool name>", "input": "<json string>" } | null,
  "finalAnswer": "Use this when you are ready to answer the user"
}

If you do not need a tool, set "action" to null and provide "finalAnswer"."""

NO_PREVIOUS_TURNS = "(no previous turns)"
NO_INTERACTIONS = "(none yet)"

_SPEAKERS = {
    MessageRole.USER: "User",
    MessageRole.ASSISTANT: "Assistant",
}


@dataclass(frozen=True)
class AgentPrompt:
    system_prompt: str
    user_prompt: str


def format_conversation(messages: Sequence[AgentMessage]) -> str:
    """Render history as ``Speaker: content`` lines; system messages are skipped."""
    lines = []
    for message in messages:
        if message.role == MessageRole.SYSTEM:
            continue
        speaker = _SPEAKERS.get(message.role, "Tool")
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)


def format_tools_for_prompt(specs: Sequence[ToolSpec]) -> str:
    return "\n".join(
        f"- {spec.name}: {spec.description}\n  input: {spec.input_schema}"
        for spec in specs
    )


class PromptBuilder:
    """Builds prompts for one reasoning step.

    Usage:
        builder = PromptBuilder(registry.specs())
        prompt = builder.build(intent, history, scratchpad)
        reply = await llm.complete(prompt.user_prompt, system_prompt=prompt.system_prompt)
    """

    def __init__(
        self,
        tool_specs: Sequence[ToolSpec],
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.system_prompt = system_prompt
        self._tools_section = format_tools_for_prompt(tool_specs)

    def build(
        self,
        intent: str,
        history: Sequence[AgentMessage],
        scratchpad: Sequence[str],
    ) -> AgentPrompt:
        conversation = format_conversation(history) or NO_PREVIOUS_TURNS
        interactions = "\n".join(scratchpad) or NO_INTERACTIONS

        user_prompt = (
            "\nConversation so far:\n"
            f"{conversation}\n"
            "\nUser intent:\n"
            f"{intent}\n"
            "\nAvailable tools:\n"
            f"{self._tools_section}\n"
            "\nPrevious tool interactions:\n"
            f"{interactions}\n"
            f"\n{RESPONSE_INSTRUCTIONS}"
        )
        return AgentPrompt(system_prompt=self.system_prompt, user_prompt=user_prompt)
