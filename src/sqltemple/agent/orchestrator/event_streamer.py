"""
Event channels and the per-run event streamer.

Channels carry AgentStreamEvents to the UI boundary. The streamer binds a
channel to one session and produces the simulated token stream for final
answers.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from ..domain.entities import AgentStreamEvent
from ..domain.ports import IEventChannel

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 80


def chunk_text(text: str, size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """Split ``text`` into fixed-size chunks; the last may be shorter."""
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    return [text[i : i + size] for i in range(0, len(text), size)]


# ============================================
# Channels
# ============================================


class QueueEventChannel(IEventChannel):
    """Bounded queue drained by a consumer (e.g. a WebSocket pump).

    ``send`` waits while the queue is full. After ``close`` further events
    are dropped, pending senders return and the consumer's iteration ends.
    """

    _CLOSED = object()

    def __init__(self, max_size: int = 256):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self._closed = False
        self._closed_event = asyncio.Event()

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def send(self, event: AgentStreamEvent) -> None:
        if self._closed:
            logger.debug(f"Dropping {event.type.value} event on closed channel")
            return
        if not self._queue.full():
            self._queue.put_nowait(event)
            return

        put_task = asyncio.ensure_future(self._queue.put(event))
        closed_task = asyncio.ensure_future(self._closed_event.wait())
        try:
            await asyncio.wait(
                {put_task, closed_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            delivered = put_task.done() and not put_task.cancelled()
            put_task.cancel()
            closed_task.cancel()
        if not delivered:
            logger.debug(f"Dropping {event.type.value} event; channel closed while full")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._closed_event.set()
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(self._CLOSED)

    async def __aiter__(self) -> AsyncIterator[AgentStreamEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item


class CollectingEventChannel(IEventChannel):
    """Keeps every event in a list."""

    def __init__(self):
        self.events: list[AgentStreamEvent] = []
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def send(self, event: AgentStreamEvent) -> None:
        if self._closed:
            return
        self.events.append(event)

    def close(self) -> None:
        self._closed = True


class BroadcastEventChannel(IEventChannel):
    """Fans events out to every subscribed channel concurrently.

    Closed subscribers are pruned on the next send.
    """

    def __init__(self):
        self._subscribers: list[IEventChannel] = []

    @property
    def is_closed(self) -> bool:
        return False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, channel: IEventChannel) -> None:
        self._subscribers.append(channel)

    def unsubscribe(self, channel: IEventChannel) -> None:
        if channel in self._subscribers:
            self._subscribers.remove(channel)

    async def send(self, event: AgentStreamEvent) -> None:
        self._subscribers = [s for s in self._subscribers if not s.is_closed]
        if self._subscribers:
            await asyncio.gather(*(s.send(event) for s in list(self._subscribers)))

    def close(self) -> None:
        for subscriber in self._subscribers:
            subscriber.close()
        self._subscribers = []


# ============================================
# Streamer
# ============================================


class EventStreamer:
    """Sends notifications for one session's run.

    Usage:
        streamer = EventStreamer(channel, session_id, chunk_size=80)

        await streamer.emit(AgentStreamEvent.status_event(session_id, status))
        await streamer.stream_tokens(message_id, final_text)
    """

    def __init__(
        self,
        channel: IEventChannel,
        session_id: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.channel = channel
        self.session_id = session_id
        self.chunk_size = chunk_size

    async def emit(self, event: AgentStreamEvent) -> None:
        if self.channel.is_closed:
            logger.debug(f"Channel closed; dropped {event.type.value} event")
            return
        await self.channel.send(event)

    async def stream_tokens(self, message_id: str, text: str) -> int:
        """Emit ``text`` as token events. Returns the number of chunks sent."""
        chunks = chunk_text(text, self.chunk_size)
        for chunk in chunks:
            await self.emit(
                AgentStreamEvent.token_event(self.session_id, message_id, chunk)
            )
        return len(chunks)
