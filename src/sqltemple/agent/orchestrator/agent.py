"""
Agent Orchestrator.

Bounded reason-act loop. Each step asks the model for a thought and either
a tool call or a final answer, runs the tool, and feeds the observation
into the next step. Events are yielded as they happen so the caller can
persist and forward them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Sequence

from ..domain.entities import (
    ActionEvent,
    AgentMessage,
    FinalEvent,
    FinalReason,
    MessageRole,
    ObservationEvent,
    OrchestratorEvent,
    ThoughtEvent,
)
from ..domain.ports import ILLMProvider
from ..tools.context import ToolContext
from ..tools.registry import ToolRegistry
from .cancellation import CancellationToken
from .prompt_builder import PromptBuilder
from .reply_parser import parse_reply
from .tool_executor import ToolExecutor

logger = logging.getLogger(__name__)

INCOMPLETE_ANSWER = (
    "I could not complete the request within the allotted steps. "
    "Please refine the question or try again."
)
NO_THOUGHT = "(no thought provided)"
DEFAULT_TOOL_INPUT = "{}"


@dataclass
class AgentConfig:
    """Configuration for the agent orchestrator.

    Attributes:
        max_steps: Model calls allowed per run
        temperature: LLM temperature
        max_tokens: Maximum tokens per reply (provider default if None)
    """

    max_steps: int = 10
    temperature: float = 0.1
    max_tokens: Optional[int] = None

    @classmethod
    def from_settings(cls, settings) -> AgentConfig:
        return cls(
            max_steps=settings.agent_max_steps,
            temperature=settings.agent_temperature,
        )


class AgentOrchestrator:
    """Runs the reasoning loop for one intent.

    A run is a finite async generator of OrchestratorEvents. Nothing is
    yielded after the final event. Provider errors propagate to the caller;
    tool errors become observations.

    Usage:
        orchestrator = AgentOrchestrator(llm_provider, ToolRegistry())

        async for event in orchestrator.run(session_id, intent, history, context):
            ...
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        tool_registry: ToolRegistry,
        config: Optional[AgentConfig] = None,
        tool_executor: Optional[ToolExecutor] = None,
    ):
        self.llm = llm_provider
        self.tools = tool_registry
        self.config = config or AgentConfig()
        self.tool_executor = tool_executor or ToolExecutor()
        self.prompt_builder = PromptBuilder(tool_registry.specs())

    async def run(
        self,
        session_id: str,
        intent: str,
        history: Sequence[AgentMessage],
        tool_context: ToolContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[OrchestratorEvent]:
        """Drive the loop until a final answer, the step budget, or cancellation.

        Args:
            session_id: Session the run belongs to
            intent: The user's request for this run
            history: Prior session messages (not modified)
            tool_context: Database access for tools
            cancel_token: Checked before every model call

        Yields:
            Thought, action, observation and exactly one final event
        """
        history = list(history)
        scratchpad: list[str] = []

        for step in range(self.config.max_steps):
            if cancel_token is not None and cancel_token.is_cancelled:
                logger.info(f"Run for session {session_id} cancelled at step {step}")
                break

            prompt = self.prompt_builder.build(intent, history, scratchpad)
            reply = await self.llm.complete(
                prompt.user_prompt,
                system_prompt=prompt.system_prompt,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
            parsed = parse_reply(reply)

            yield ThoughtEvent(text=parsed.thought or NO_THOUGHT)
            scratchpad.append(f"Thought: {parsed.thought or '(none)'}")

            if parsed.action_name:
                tool = self.tools.get(parsed.action_name)
                if tool is None:
                    message = f'Tool "{parsed.action_name}" is not available.'
                    scratchpad.append(f"Observation: {message}")
                    yield ObservationEvent(tool=parsed.action_name, output=message)
                    continue

                tool_input = parsed.action_input or DEFAULT_TOOL_INPUT
                yield ActionEvent(tool=tool.name, input=tool_input)
                scratchpad.append(f"Action: {tool.name} with {tool_input}")

                outcome = await self.tool_executor.execute(tool, tool_input, tool_context)
                scratchpad.append(f"Observation: {outcome.note}")
                yield ObservationEvent(
                    tool=tool.name,
                    output=outcome.output,
                    result_kind=outcome.result_kind,
                    result_data=outcome.result_data,
                )

                if outcome.succeeded:
                    history = history + [
                        AgentMessage(
                            id=f"{session_id}-tool-{step}",
                            session_id=session_id,
                            role=MessageRole.TOOL,
                            content=outcome.output,
                        )
                    ]
                continue

            if parsed.final_answer:
                scratchpad.append(f"Final: {parsed.final_answer}")
                yield FinalEvent(text=parsed.final_answer)
                return

        if cancel_token is not None and cancel_token.is_cancelled:
            reason = FinalReason.CANCELLED
        else:
            logger.warning(
                f"Run for session {session_id} exhausted {self.config.max_steps} steps"
            )
            reason = FinalReason.STEP_BUDGET_EXHAUSTED

        yield FinalEvent(text=INCOMPLETE_ANSWER, reason=reason)
