"""
Tests for the reasoning loop.

Tests cover:
- Event sequence for a tool call followed by an answer
- Tool failures and unknown tools
- Step budget exhaustion
- Cancellation before and between iterations
- Provider errors
"""

import json

import pytest

from src.sqltemple.agent.domain.entities import (
    ActionEvent,
    AgentMessage,
    FinalEvent,
    FinalReason,
    MessageRole,
    ObservationEvent,
    ThoughtEvent,
    ToolResult,
)
from src.sqltemple.agent.orchestrator import (
    AgentConfig,
    AgentOrchestrator,
    CancellationToken,
)
from src.sqltemple.agent.orchestrator.agent import INCOMPLETE_ANSWER, NO_THOUGHT
from src.sqltemple.agent.tools import ToolRegistry
from src.sqltemple.agent.tools.base import AgentTool
from src.sqltemple.errors import ToolExecutionError


# ============================================
# Helpers
# ============================================


class StubTool(AgentTool):
    """Tool returning a fixed result or raising a fixed error."""

    def __init__(self, name, result=None, error=None):
        self.name = name
        self.description = f"{name} stub"
        self.input_schema = "{}"
        self.result = result
        self.error = error
        self.inputs = []

    async def run(self, input, context):
        self.inputs.append(input)
        if self.error is not None:
            raise self.error
        return self.result


async def collect(orchestrator, context, intent="q", history=None, token=None):
    return [
        event
        async for event in orchestrator.run(
            "s1", intent, history or [], context, cancel_token=token
        )
    ]


def action_reply(name, tool_input, thought="t"):
    return {"thought": thought, "action": {"name": name, "input": tool_input}}


def final_reply(text, thought="answer"):
    return {"thought": thought, "action": None, "finalAnswer": text}


# ============================================
# Event Sequence
# ============================================


class TestEventSequence:
    @pytest.mark.asyncio
    async def test_tool_then_answer(self, scripted_llm, make_tool_context):
        tool = StubTool(
            "schema_inspector",
            result=ToolResult(summary="Schema ready", data={"tables": 3}, kind="schema"),
        )
        llm = scripted_llm(
            [
                {
                    "thought": "Need the schema",
                    "action": {"name": "schema_inspector", "input": '{"table":"task_executions"}'},
                },
                final_reply("Here is the query", thought="Ready to answer"),
            ]
        )
        orchestrator = AgentOrchestrator(llm, ToolRegistry([tool]))
        history = [
            AgentMessage(session_id="s1", role=MessageRole.USER, content="Describe task executions")
        ]

        events = await collect(
            orchestrator, make_tool_context(), "Describe task executions", history
        )

        assert [e.kind for e in events] == [
            "thought",
            "action",
            "observation",
            "thought",
            "final",
        ]
        assert events[0] == ThoughtEvent(text="Need the schema")
        assert events[1] == ActionEvent(tool="schema_inspector", input='{"table":"task_executions"}')
        observation = events[2]
        assert observation.tool == "schema_inspector"
        assert "Schema ready" in observation.output
        assert observation.result_kind == "schema"
        assert observation.result_data == {"tables": 3}
        assert events[3].text == "Ready to answer"
        assert events[4] == FinalEvent(text="Here is the query", reason=FinalReason.ANSWER)
        assert len(llm.calls) == 2
        assert tool.inputs == ['{"table":"task_executions"}']

    @pytest.mark.asyncio
    async def test_observation_is_summary_plus_json(self, scripted_llm, make_tool_context):
        tool = StubTool("sql_runner", result=ToolResult(summary="Ran", data={"row_count": 1}))
        llm = scripted_llm([action_reply("sql_runner", '{"sql":"SELECT 1"}'), final_reply("ok")])

        events = await collect(AgentOrchestrator(llm, ToolRegistry([tool])), make_tool_context())

        output = events[2].output
        summary, payload = output.split("\n", 1)
        assert summary == "Ran"
        assert json.loads(payload) == {"row_count": 1}

    @pytest.mark.asyncio
    async def test_second_prompt_contains_scratchpad_and_tool_message(
        self, scripted_llm, make_tool_context
    ):
        tool = StubTool("sql_runner", result=ToolResult(summary="Ran fine"))
        llm = scripted_llm([action_reply("sql_runner", '{"sql":"SELECT 1"}', thought="check"), final_reply("ok")])

        await collect(AgentOrchestrator(llm, ToolRegistry([tool])), make_tool_context())

        second = llm.calls[1]["prompt"]
        assert "Thought: check" in second
        assert 'Action: sql_runner with {"sql":"SELECT 1"}' in second
        assert "Observation: Ran fine" in second
        assert "Tool: Ran fine" in second

    @pytest.mark.asyncio
    async def test_missing_action_input_defaults_to_empty_object(
        self, scripted_llm, make_tool_context
    ):
        tool = StubTool("schema_inspector", result=ToolResult(summary="ok"))
        llm = scripted_llm(['{"thought":"t","action":{"name":"schema_inspector"}}', final_reply("done")])

        events = await collect(AgentOrchestrator(llm, ToolRegistry([tool])), make_tool_context())

        assert events[1].input == "{}"
        assert tool.inputs == ["{}"]

    @pytest.mark.asyncio
    async def test_missing_thought_placeholder(self, scripted_llm, make_tool_context):
        llm = scripted_llm(['{"finalAnswer":"fine"}'])

        events = await collect(AgentOrchestrator(llm, ToolRegistry([])), make_tool_context())

        assert events[0].text == NO_THOUGHT
        assert events[-1].text == "fine"

    @pytest.mark.asyncio
    async def test_plain_text_reply_is_final(self, scripted_llm, make_tool_context):
        llm = scripted_llm(["There are 12 tables."])

        events = await collect(AgentOrchestrator(llm, ToolRegistry([])), make_tool_context())

        assert [e.kind for e in events] == ["thought", "final"]
        assert events[-1].text == "There are 12 tables."

    @pytest.mark.asyncio
    async def test_temperature_passed_to_provider(self, scripted_llm, make_tool_context):
        llm = scripted_llm([final_reply("x")])

        await collect(AgentOrchestrator(llm, ToolRegistry([])), make_tool_context())

        assert llm.calls[0]["temperature"] == 0.1
        assert llm.calls[0]["system_prompt"]


# ============================================
# Tool Failures
# ============================================


class TestToolFailures:
    @pytest.mark.asyncio
    async def test_tool_error_becomes_observation(self, scripted_llm, make_tool_context):
        tool = StubTool("sql_runner", error=ToolExecutionError("boom", tool="sql_runner"))
        llm = scripted_llm([action_reply("sql_runner", "{}"), final_reply("recovered")])

        events = await collect(AgentOrchestrator(llm, ToolRegistry([tool])), make_tool_context())

        observation = events[2]
        assert observation.output == "Tool failed: boom"
        assert observation.result_kind is None
        assert observation.result_data is None
        assert len(llm.calls) == 2
        assert events[-1].text == "recovered"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_absorbed(self, scripted_llm, make_tool_context):
        tool = StubTool("sql_runner", error=RuntimeError("socket closed"))
        llm = scripted_llm([action_reply("sql_runner", "{}"), final_reply("ok")])

        events = await collect(AgentOrchestrator(llm, ToolRegistry([tool])), make_tool_context())

        assert events[2].output == "Tool failed: socket closed"
        assert "Observation: socket closed" in llm.calls[1]["prompt"]

    @pytest.mark.asyncio
    async def test_failed_tool_adds_no_history_message(self, scripted_llm, make_tool_context):
        tool = StubTool("sql_runner", error=RuntimeError("nope"))
        llm = scripted_llm([action_reply("sql_runner", "{}"), final_reply("ok")])

        await collect(AgentOrchestrator(llm, ToolRegistry([tool])), make_tool_context())

        assert "Tool: Tool failed" not in llm.calls[1]["prompt"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self, scripted_llm, make_tool_context):
        llm = scripted_llm([action_reply("drop_database", "{}"), final_reply("ok")])

        events = await collect(AgentOrchestrator(llm, ToolRegistry([])), make_tool_context())

        assert [e.kind for e in events] == ["thought", "observation", "thought", "final"]
        observation = events[1]
        assert isinstance(observation, ObservationEvent)
        assert observation.output == 'Tool "drop_database" is not available.'
        assert observation.result_kind is None
        assert observation.result_data is None


# ============================================
# Termination
# ============================================


class TestTermination:
    @pytest.mark.asyncio
    async def test_step_budget_exhausted(self, scripted_llm, make_tool_context):
        tool = StubTool("sql_runner", result=ToolResult(summary="ok"))
        llm = scripted_llm([action_reply("sql_runner", "{}") for _ in range(5)])
        orchestrator = AgentOrchestrator(llm, ToolRegistry([tool]), AgentConfig(max_steps=3))

        events = await collect(orchestrator, make_tool_context())

        assert len(llm.calls) == 3
        finals = [e for e in events if e.kind == "final"]
        assert finals == [
            FinalEvent(text=INCOMPLETE_ANSWER, reason=FinalReason.STEP_BUDGET_EXHAUSTED)
        ]
        assert events[-1] is finals[0]

    @pytest.mark.asyncio
    async def test_default_budget_is_ten(self, scripted_llm, make_tool_context):
        llm = scripted_llm([action_reply("ghost", "{}") for _ in range(20)])

        events = await collect(AgentOrchestrator(llm, ToolRegistry([])), make_tool_context())

        assert len(llm.calls) == 10
        assert events[-1].text == INCOMPLETE_ANSWER

    @pytest.mark.asyncio
    async def test_nothing_after_final(self, scripted_llm, make_tool_context):
        llm = scripted_llm([final_reply("first"), final_reply("second")])

        events = await collect(AgentOrchestrator(llm, ToolRegistry([])), make_tool_context())

        assert events[-1].text == "first"
        assert sum(1 for e in events if e.kind == "final") == 1
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_empty_reply_does_not_finish(self, scripted_llm, make_tool_context):
        llm = scripted_llm(["", final_reply("done")])

        events = await collect(AgentOrchestrator(llm, ToolRegistry([])), make_tool_context())

        assert len(llm.calls) == 2
        assert events[-1].text == "done"

    @pytest.mark.asyncio
    async def test_cancelled_before_first_step(self, scripted_llm, make_tool_context):
        llm = scripted_llm([final_reply("never")])
        token = CancellationToken()
        token.cancel()

        events = await collect(
            AgentOrchestrator(llm, ToolRegistry([])), make_tool_context(), token=token
        )

        assert events == [FinalEvent(text=INCOMPLETE_ANSWER, reason=FinalReason.CANCELLED)]
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_cancelled_between_steps(self, scripted_llm, make_tool_context):
        token = CancellationToken()

        class CancellingTool(StubTool):
            async def run(self, input, context):
                token.cancel()
                return ToolResult(summary="ran")

        llm = scripted_llm([action_reply("sql_runner", "{}"), final_reply("never")])
        orchestrator = AgentOrchestrator(llm, ToolRegistry([CancellingTool("sql_runner")]))

        events = await collect(orchestrator, make_tool_context(), token=token)

        assert [e.kind for e in events] == ["thought", "action", "observation", "final"]
        assert events[-1].reason == FinalReason.CANCELLED
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, scripted_llm, make_tool_context):
        llm = scripted_llm([RuntimeError("provider down")])

        with pytest.raises(RuntimeError, match="provider down"):
            await collect(AgentOrchestrator(llm, ToolRegistry([])), make_tool_context())

    @pytest.mark.asyncio
    async def test_history_is_not_mutated(self, scripted_llm, make_tool_context):
        tool = StubTool("sql_runner", result=ToolResult(summary="ok"))
        llm = scripted_llm([action_reply("sql_runner", "{}"), final_reply("done")])
        history = [AgentMessage(session_id="s1", role=MessageRole.USER, content="q")]

        await collect(
            AgentOrchestrator(llm, ToolRegistry([tool])), make_tool_context(), history=history
        )

        assert len(history) == 1
