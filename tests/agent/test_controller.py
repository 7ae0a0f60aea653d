"""
Tests for the agent controller.

Tests cover:
- Session creation and continuation
- Re-entry guard
- Orchestrator event to message/notification mapping
- Simulated token streaming of final answers
- Cancellation, failures and shutdown
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.sqltemple.agent.domain.entities import SessionStatus, StreamEventType
from src.sqltemple.agent.memory import AgentHistoryStore, InMemoryAgentStorage
from src.sqltemple.agent.orchestrator import (
    AgentConfig,
    AgentController,
    AgentOrchestrator,
    CollectingEventChannel,
    ControllerConfig,
    QueueEventChannel,
)
from src.sqltemple.agent.orchestrator.agent import INCOMPLETE_ANSWER
from src.sqltemple.agent.tools import ToolRegistry
from src.sqltemple.database.models import QueryResult
from src.sqltemple.errors import NoActiveConnectionError, SessionAlreadyRunningError


# ============================================
# Fixtures
# ============================================


@pytest.fixture
def database(connection):
    client = MagicMock()
    client.execute_query = AsyncMock(return_value=QueryResult())
    client.get_schema_metadata = AsyncMock(return_value=None)
    return SimpleNamespace(active_connection=connection, active_client=client)


@pytest.fixture
def history():
    return AgentHistoryStore(InMemoryAgentStorage())


@pytest.fixture
def make_controller(database, history):
    def _make(llm, chunk_size=80):
        orchestrator = AgentOrchestrator(llm, ToolRegistry())
        return AgentController(
            orchestrator=orchestrator,
            history=history,
            database=database,
            config=ControllerConfig(stream_chunk_size=chunk_size),
        )

    return _make


async def wait_for_run(controller, session_id):
    run = controller.registry.get(session_id)
    if run is not None and run.task is not None:
        await run.task


def types_of(channel):
    return [event.type for event in channel.events]


def message_types(channel):
    return [
        (event.message.metadata or {}).get("type")
        for event in channel.events
        if event.type == StreamEventType.MESSAGE
    ]


# ============================================
# Session Start
# ============================================


class TestStartSession:
    @pytest.mark.asyncio
    async def test_requires_connection(self, make_controller, scripted_llm, database):
        database.active_connection = None
        llm = scripted_llm()
        controller = make_controller(llm)

        with pytest.raises(NoActiveConnectionError):
            await controller.start_or_continue_session("hi", CollectingEventChannel())

        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_new_session_returned_running(
        self, make_controller, scripted_llm, history, connection
    ):
        controller = make_controller(scripted_llm([{"thought": "t", "finalAnswer": "done"}]))
        channel = CollectingEventChannel()

        session = await controller.start_or_continue_session("How many orders?", channel)

        assert session.status == SessionStatus.RUNNING
        assert session.title == "How many orders?"
        assert session.last_message == "How many orders?"
        assert session.connection_id == connection.id
        assert controller.is_running(session.id)
        assert channel.events[0].type == StreamEventType.SESSION_STARTED
        assert channel.events[0].session.id == session.id
        assert channel.events[1].message.content == "How many orders?"

        await wait_for_run(controller, session.id)

        stored = await history.get_session_with_messages(session.id)
        assert stored.session.status == SessionStatus.COMPLETED
        assert stored.session.last_message == "done"
        assert not controller.is_running(session.id)
        assert session.status == SessionStatus.RUNNING

    @pytest.mark.asyncio
    async def test_long_intent_title_truncated(self, make_controller, scripted_llm):
        controller = make_controller(scripted_llm())
        intent = "x" * 200

        session = await controller.start_or_continue_session(intent, CollectingEventChannel())
        await wait_for_run(controller, session.id)

        assert session.title == "x" * 80

    @pytest.mark.asyncio
    async def test_continue_existing_session(self, make_controller, scripted_llm, history):
        llm = scripted_llm(
            [{"finalAnswer": "first answer"}, {"finalAnswer": "second answer"}]
        )
        controller = make_controller(llm)
        first = await controller.start_or_continue_session("first", CollectingEventChannel())
        await wait_for_run(controller, first.id)

        channel = CollectingEventChannel()
        second = await controller.start_or_continue_session(
            "second", channel, existing_session_id=first.id
        )
        await wait_for_run(controller, second.id)

        assert second.id == first.id
        assert StreamEventType.SESSION_STARTED not in types_of(channel)
        prompt = llm.calls[1]["prompt"]
        assert "User: first" in prompt
        assert "Assistant: first answer" in prompt
        assert "User: second" in prompt

        stored = await history.get_session_with_messages(first.id)
        assert [m.content for m in stored.messages if m.message_type == "user"] == [
            "first",
            "second",
        ]

    @pytest.mark.asyncio
    async def test_unknown_session_id_starts_new(self, make_controller, scripted_llm):
        controller = make_controller(scripted_llm())
        channel = CollectingEventChannel()

        session = await controller.start_or_continue_session(
            "hello", channel, existing_session_id="missing"
        )
        await wait_for_run(controller, session.id)

        assert session.id != "missing"
        assert channel.events[0].type == StreamEventType.SESSION_STARTED

    @pytest.mark.asyncio
    async def test_reentry_rejected_before_model_call(self, make_controller, scripted_llm):
        llm = scripted_llm()
        controller = make_controller(llm)
        session = await controller.start_or_continue_session("one", CollectingEventChannel())

        with pytest.raises(SessionAlreadyRunningError) as exc_info:
            await controller.start_or_continue_session(
                "two", CollectingEventChannel(), existing_session_id=session.id
            )

        assert exc_info.value.message == "That session is already running. Please wait."
        assert llm.calls == []
        await wait_for_run(controller, session.id)
        assert len(llm.calls) == 1


# ============================================
# Event Mapping
# ============================================


class TestEventMapping:
    @pytest.mark.asyncio
    async def test_tool_call_notifications_and_messages(
        self, make_controller, scripted_llm, history
    ):
        llm = scripted_llm(
            [
                {
                    "thought": "suggest it",
                    "action": {
                        "name": "query_suggestion",
                        "input": json.dumps({"sql": "SELECT 1", "description": "One"}),
                    },
                },
                {"thought": "wrap up", "finalAnswer": "Use the query."},
            ]
        )
        controller = make_controller(llm)
        channel = CollectingEventChannel()

        session = await controller.start_or_continue_session("give sql", channel)
        await wait_for_run(controller, session.id)

        assert types_of(channel) == [
            StreamEventType.SESSION_STARTED,
            StreamEventType.MESSAGE,
            StreamEventType.MESSAGE,
            StreamEventType.TOOL_CALL,
            StreamEventType.MESSAGE,
            StreamEventType.TOOL_RESULT,
            StreamEventType.MESSAGE,
            StreamEventType.MESSAGE,
            StreamEventType.MESSAGE,
            StreamEventType.MESSAGE,
            StreamEventType.TOKEN,
            StreamEventType.MESSAGE,
            StreamEventType.STATUS,
        ]
        assert message_types(channel) == [
            "user",
            "thought",
            "tool_call",
            "tool_result",
            "sql_suggestion",
            "thought",
            "final",
            "final",
        ]

        tool_call = channel.events[3]
        assert tool_call.name == "query_suggestion"
        assert json.loads(tool_call.input) == {"sql": "SELECT 1", "description": "One"}
        assert channel.events[-1].status == SessionStatus.COMPLETED

        stored = await history.get_session_with_messages(session.id)
        suggestion = [m for m in stored.messages if m.message_type == "sql_suggestion"][0]
        assert suggestion.content == "One"
        assert suggestion.metadata == {
            "type": "sql_suggestion",
            "sql": "SELECT 1",
            "description": "One",
        }
        tool_call_message = [m for m in stored.messages if m.message_type == "tool_call"][0]
        assert tool_call_message.content == "Calling tool query_suggestion"
        tool_result_message = [m for m in stored.messages if m.message_type == "tool_result"][0]
        assert tool_result_message.metadata["tool"] == "query_suggestion"

    @pytest.mark.asyncio
    async def test_suggestion_without_description(
        self, make_controller, scripted_llm, history
    ):
        llm = scripted_llm(
            [
                {"thought": "t", "action": {"name": "query_suggestion", "input": {"sql": "SELECT 2"}}},
                {"finalAnswer": "ok"},
            ]
        )
        controller = make_controller(llm)

        session = await controller.start_or_continue_session("q", CollectingEventChannel())
        await wait_for_run(controller, session.id)

        stored = await history.get_session_with_messages(session.id)
        suggestion = [m for m in stored.messages if m.message_type == "sql_suggestion"][0]
        assert suggestion.content == "I prepared a SQL query that you can insert or run."

    @pytest.mark.asyncio
    async def test_final_answer_streamed_in_chunks(
        self, make_controller, scripted_llm, history
    ):
        answer = "".join(chr(ord("a") + i % 26) for i in range(200))
        controller = make_controller(scripted_llm([{"thought": "t", "finalAnswer": answer}]))
        channel = CollectingEventChannel()

        session = await controller.start_or_continue_session("q", channel)
        await wait_for_run(controller, session.id)

        tokens = [e for e in channel.events if e.type == StreamEventType.TOKEN]
        assert [len(t.token) for t in tokens] == [80, 80, 40]
        assert "".join(t.token for t in tokens) == answer

        finals = [
            e.message
            for e in channel.events
            if e.type == StreamEventType.MESSAGE and e.message.message_type == "final"
        ]
        placeholder, stored = finals
        assert placeholder.content == ""
        assert placeholder.metadata == {"type": "final", "streaming": True}
        assert stored.content == answer
        assert stored.metadata == {"type": "final", "reason": "answer"}
        assert placeholder.id == stored.id
        assert {t.message_id for t in tokens} == {stored.id}

        persisted = await history.get_session_with_messages(session.id)
        assert [m for m in persisted.messages if m.message_type == "final"] == [stored]

    @pytest.mark.asyncio
    async def test_budget_exhaustion_completes_session(
        self, database, history, scripted_llm
    ):
        llm = scripted_llm([{"thought": "t", "action": {"name": "ghost"}} for _ in range(3)])
        controller = AgentController(
            AgentOrchestrator(llm, ToolRegistry(), AgentConfig(max_steps=3)),
            history,
            database,
        )

        session = await controller.start_or_continue_session("q", CollectingEventChannel())
        await wait_for_run(controller, session.id)

        stored = await history.get_session_with_messages(session.id)
        assert stored.session.status == SessionStatus.COMPLETED
        assert stored.session.last_message == INCOMPLETE_ANSWER
        final = [m for m in stored.messages if m.message_type == "final"][0]
        assert final.metadata["reason"] == "step_budget_exhausted"


# ============================================
# Failure and Cancellation
# ============================================


class TestFailures:
    @pytest.mark.asyncio
    async def test_provider_error_marks_session_error(
        self, make_controller, scripted_llm, history
    ):
        controller = make_controller(scripted_llm([RuntimeError("provider down")]))
        channel = CollectingEventChannel()

        session = await controller.start_or_continue_session("q", channel)
        await wait_for_run(controller, session.id)

        assert channel.events[-1].type == StreamEventType.ERROR
        assert channel.events[-1].error == "provider down"
        stored = await history.get_session_with_messages(session.id)
        assert stored.session.status == SessionStatus.ERROR
        assert not controller.is_running(session.id)

    @pytest.mark.asyncio
    async def test_cancel_unknown_session(self, make_controller, scripted_llm):
        controller = make_controller(scripted_llm())

        assert await controller.cancel("nope") is False

    @pytest.mark.asyncio
    async def test_cancel_marks_error_and_releases(
        self, make_controller, scripted_llm, history
    ):
        llm = scripted_llm([{"finalAnswer": "never"}])
        controller = make_controller(llm)
        channel = CollectingEventChannel()
        session = await controller.start_or_continue_session("q", channel)
        run = controller.registry.get(session.id)

        assert await controller.cancel(session.id) is True
        assert not controller.is_running(session.id)

        await run.task

        assert llm.calls == []
        stored = await history.get_session_with_messages(session.id)
        assert stored.session.status == SessionStatus.ERROR
        statuses = [e.status for e in channel.events if e.type == StreamEventType.STATUS]
        assert statuses == [SessionStatus.ERROR]
        final = [m for m in stored.messages if m.message_type == "final"][0]
        assert final.metadata["reason"] == "cancelled"

    @pytest.mark.asyncio
    async def test_session_restartable_after_cancel(self, make_controller, scripted_llm):
        controller = make_controller(scripted_llm())
        session = await controller.start_or_continue_session("q", CollectingEventChannel())
        old_run = controller.registry.get(session.id)
        await controller.cancel(session.id)

        again = await controller.start_or_continue_session(
            "retry", CollectingEventChannel(), existing_session_id=session.id
        )
        new_run = controller.registry.get(session.id)

        assert again.id == session.id
        assert new_run is not old_run
        assert controller.registry.release(old_run) is False
        assert controller.registry.get(session.id) is new_run

        await old_run.task
        await new_run.task

    @pytest.mark.asyncio
    async def test_shutdown_stops_blocked_runs(self, make_controller, history):
        started = asyncio.Event()

        class BlockingLLM:
            model_name = "blocking"

            async def complete(self, prompt, system_prompt=None, temperature=0.1, max_tokens=None):
                started.set()
                await asyncio.Event().wait()

        controller = make_controller(BlockingLLM())
        session = await controller.start_or_continue_session("q", CollectingEventChannel())
        await started.wait()

        await controller.shutdown(timeout=0.05)

        assert not controller.is_running(session.id)
        stored = await history.get_session_with_messages(session.id)
        assert stored.session.status == SessionStatus.ERROR

    @pytest.mark.asyncio
    async def test_closed_socket_queue_releases_run(
        self, make_controller, scripted_llm, history
    ):
        controller = make_controller(scripted_llm([{"thought": "t", "finalAnswer": "done"}]))
        channel = QueueEventChannel(max_size=2)

        session = await controller.start_or_continue_session("q", channel)
        for _ in range(5):
            await asyncio.sleep(0)
        assert controller.is_running(session.id)

        channel.close()
        await asyncio.wait_for(wait_for_run(controller, session.id), timeout=1)

        assert not controller.is_running(session.id)
        stored = await history.get_session_with_messages(session.id)
        assert stored.session.status == SessionStatus.COMPLETED
