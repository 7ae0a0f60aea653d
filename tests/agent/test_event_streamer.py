"""
Tests for event channels, the event streamer and the active run registry.
"""

import asyncio

import pytest

from src.sqltemple.agent.domain.entities import (
    AgentMessage,
    AgentSession,
    AgentStreamEvent,
    MessageRole,
    SessionStatus,
    StreamEventType,
)
from src.sqltemple.agent.orchestrator import (
    ActiveRunRegistry,
    BroadcastEventChannel,
    CancellationToken,
    CollectingEventChannel,
    EventStreamer,
    QueueEventChannel,
    chunk_text,
)
from src.sqltemple.errors import SessionAlreadyRunningError


def _status(session_id="s1"):
    return AgentStreamEvent.status_event(session_id, SessionStatus.RUNNING)


# ============================================
# Chunking
# ============================================


class TestChunkText:
    @pytest.mark.parametrize("length", [0, 1, 79, 80, 81, 160, 333])
    def test_chunks_rebuild_text(self, length):
        text = "".join(chr(ord("a") + i % 26) for i in range(length))

        chunks = chunk_text(text)

        assert "".join(chunks) == text
        assert all(len(chunk) == 80 for chunk in chunks[:-1])
        if chunks:
            assert 0 < len(chunks[-1]) <= 80

    def test_custom_size(self):
        assert chunk_text("abcdefg", 3) == ["abc", "def", "g"]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            chunk_text("abc", 0)


# ============================================
# Channels
# ============================================


class TestQueueEventChannel:
    @pytest.mark.asyncio
    async def test_iteration_ends_after_close(self):
        channel = QueueEventChannel(max_size=4)
        await channel.send(_status("a"))
        await channel.send(_status("b"))
        channel.close()

        received = [event.session_id async for event in channel]

        assert received == ["a", "b"]

    @pytest.mark.asyncio
    async def test_send_after_close_dropped(self):
        channel = QueueEventChannel()
        channel.close()
        await channel.send(_status())

        assert channel.is_closed
        assert [event async for event in channel] == []

    @pytest.mark.asyncio
    async def test_close_when_full(self):
        channel = QueueEventChannel(max_size=1)
        await channel.send(_status())

        channel.close()

        assert [event async for event in channel] == []

    @pytest.mark.asyncio
    async def test_send_waits_when_full(self):
        channel = QueueEventChannel(max_size=1)
        await channel.send(_status("a"))

        pending = asyncio.create_task(channel.send(_status("b")))
        await asyncio.sleep(0)
        assert not pending.done()

        iterator = channel.__aiter__()
        first = await iterator.__anext__()
        await pending
        second = await iterator.__anext__()

        assert (first.session_id, second.session_id) == ("a", "b")

    @pytest.mark.asyncio
    async def test_close_releases_blocked_sender(self):
        channel = QueueEventChannel(max_size=1)
        await channel.send(_status("a"))
        pending = asyncio.create_task(channel.send(_status("b")))
        await asyncio.sleep(0)
        assert not pending.done()

        channel.close()
        await asyncio.wait_for(pending, timeout=1)

        assert [event async for event in channel] == []

    @pytest.mark.asyncio
    async def test_close_releases_every_blocked_sender(self):
        channel = QueueEventChannel(max_size=1)
        await channel.send(_status("a"))
        senders = [
            asyncio.create_task(channel.send(_status(f"s{i}"))) for i in range(3)
        ]
        await asyncio.sleep(0)

        channel.close()
        await asyncio.wait_for(asyncio.gather(*senders), timeout=1)

        assert all(sender.done() for sender in senders)


class TestBroadcastEventChannel:
    @pytest.mark.asyncio
    async def test_fan_out(self):
        broadcast = BroadcastEventChannel()
        first, second = CollectingEventChannel(), CollectingEventChannel()
        broadcast.subscribe(first)
        broadcast.subscribe(second)

        await broadcast.send(_status())

        assert len(first.events) == 1
        assert len(second.events) == 1

    @pytest.mark.asyncio
    async def test_closed_subscribers_pruned(self):
        broadcast = BroadcastEventChannel()
        gone = CollectingEventChannel()
        broadcast.subscribe(gone)
        gone.close()

        await broadcast.send(_status())

        assert broadcast.subscriber_count == 0
        assert gone.events == []

    @pytest.mark.asyncio
    async def test_stalled_subscriber_does_not_block_others(self):
        broadcast = BroadcastEventChannel()
        stalled = QueueEventChannel(max_size=1)
        healthy = CollectingEventChannel()
        broadcast.subscribe(stalled)
        broadcast.subscribe(healthy)
        await broadcast.send(_status("a"))

        pending = asyncio.create_task(broadcast.send(_status("b")))
        for _ in range(3):
            await asyncio.sleep(0)
        assert not pending.done()
        assert [event.session_id for event in healthy.events] == ["a", "b"]

        stalled.close()
        await asyncio.wait_for(pending, timeout=1)

    def test_unsubscribe(self):
        broadcast = BroadcastEventChannel()
        channel = CollectingEventChannel()
        broadcast.subscribe(channel)
        broadcast.unsubscribe(channel)
        broadcast.unsubscribe(channel)

        assert broadcast.subscriber_count == 0


# ============================================
# Streamer
# ============================================


class TestEventStreamer:
    @pytest.mark.asyncio
    async def test_stream_tokens(self):
        channel = CollectingEventChannel()
        streamer = EventStreamer(channel, "s1", chunk_size=4)

        count = await streamer.stream_tokens("m1", "abcdefghij")

        assert count == 3
        assert [e.token for e in channel.events] == ["abcd", "efgh", "ij"]
        assert all(e.type == StreamEventType.TOKEN for e in channel.events)
        assert all(e.message_id == "m1" and e.session_id == "s1" for e in channel.events)

    @pytest.mark.asyncio
    async def test_emit_skips_closed_channel(self):
        channel = CollectingEventChannel()
        channel.close()

        await EventStreamer(channel, "s1").emit(_status())

        assert channel.events == []


# ============================================
# Notification Payloads
# ============================================


class TestStreamEventPayloads:
    def test_session_started(self):
        session = AgentSession(title="Orders", id="s1", connection_id=3)

        payload = AgentStreamEvent.session_started(session).to_dict()

        assert payload["type"] == "session-started"
        assert payload["session"]["id"] == "s1"
        assert payload["session"]["connectionId"] == 3
        assert payload["session"]["status"] == "running"

    def test_message(self):
        message = AgentMessage(
            session_id="s1", role=MessageRole.TOOL, content="out", id="m1", metadata={"type": "tool_result"}
        )

        payload = AgentStreamEvent.message_event("s1", message).to_dict()

        assert payload["sessionId"] == "s1"
        assert payload["message"]["id"] == "m1"
        assert payload["message"]["role"] == "tool"
        assert payload["message"]["metadata"] == {"type": "tool_result"}

    def test_token(self):
        assert AgentStreamEvent.token_event("s1", "m1", "abc").to_dict() == {
            "type": "token",
            "sessionId": "s1",
            "messageId": "m1",
            "token": "abc",
        }

    def test_tool_call_and_result(self):
        assert AgentStreamEvent.tool_call("s1", "sql_runner", "{}").to_dict() == {
            "type": "tool-call",
            "sessionId": "s1",
            "name": "sql_runner",
            "input": "{}",
        }
        assert AgentStreamEvent.tool_result("s1", "sql_runner", "ok").to_dict()["output"] == "ok"

    def test_status_and_error(self):
        assert AgentStreamEvent.status_event("s1", SessionStatus.ERROR).to_dict() == {
            "type": "status",
            "sessionId": "s1",
            "status": "error",
        }
        assert AgentStreamEvent.error_event("s1", "boom").to_dict()["error"] == "boom"


# ============================================
# Run Registry
# ============================================


class TestActiveRunRegistry:
    def test_reserve_and_release(self):
        registry = ActiveRunRegistry()
        run = registry.reserve("s1", CollectingEventChannel())

        assert registry.is_active("s1")
        assert registry.get("s1") is run
        assert registry.release(run) is True
        assert not registry.is_active("s1")
        assert len(registry) == 0

    def test_second_reserve_rejected(self):
        registry = ActiveRunRegistry()
        registry.reserve("s1", CollectingEventChannel())

        with pytest.raises(SessionAlreadyRunningError) as exc_info:
            registry.reserve("s1", CollectingEventChannel())

        assert exc_info.value.session_id == "s1"

    def test_stale_release_keeps_new_run(self):
        registry = ActiveRunRegistry()
        old = registry.reserve("s1", CollectingEventChannel())
        registry.release(old)
        new = registry.reserve("s1", CollectingEventChannel())

        assert registry.release(old) is False
        assert registry.get("s1") is new

    def test_runs_are_independent_per_session(self):
        registry = ActiveRunRegistry()
        registry.reserve("a", CollectingEventChannel())
        registry.reserve("b", CollectingEventChannel())

        assert {run.session_id for run in registry.active_runs()} == {"a", "b"}


class TestCancellationToken:
    @pytest.mark.asyncio
    async def test_cancel(self):
        token = CancellationToken()
        assert not token.is_cancelled

        waiter = asyncio.create_task(token.wait())
        token.cancel()
        await waiter

        assert token.is_cancelled
