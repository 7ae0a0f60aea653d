"""
Agent Controller.

Entry point for starting, continuing and cancelling agent sessions. The
controller resolves the session, guards against concurrent runs, launches
the orchestrator in the background, and turns each orchestrator event into
persisted messages and UI notifications.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from ...errors import NoActiveConnectionError, error_message
from ..domain.entities import (
    ActionEvent,
    AgentMessage,
    AgentSession,
    AgentStreamEvent,
    CreateSessionInput,
    FinalEvent,
    MessageInput,
    MessageRole,
    MessageType,
    ObservationEvent,
    OrchestratorEvent,
    SessionStatus,
    SessionUpdate,
    SessionWithMessages,
    ThoughtEvent,
)
from ..domain.ports import IEventChannel, IHistoryStore
from ..tools.context import ToolContext
from ..tools.query_suggestion import SQL_SUGGESTION_KIND
from .agent import AgentOrchestrator
from .event_streamer import DEFAULT_CHUNK_SIZE, EventStreamer
from .session_registry import ActiveRun, ActiveRunRegistry

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 80
DEFAULT_TITLE = "New Agent Session"
DEFAULT_SUGGESTION_TEXT = "I prepared a SQL query that you can insert or run."


def _task_exception_handler(task: asyncio.Task) -> None:
    """Log exceptions from background run tasks."""
    try:
        exc = task.exception()
        if exc:
            logger.error(
                f"Background task {task.get_name()} failed: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
    except asyncio.CancelledError:
        pass


@dataclass
class ControllerConfig:
    """Configuration for the agent controller.

    Attributes:
        stream_chunk_size: Characters per simulated token of the final answer
        shutdown_timeout: Seconds to wait for runs to finish on shutdown
    """

    stream_chunk_size: int = DEFAULT_CHUNK_SIZE
    shutdown_timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings) -> ControllerConfig:
        return cls(stream_chunk_size=settings.stream_chunk_size)


class AgentController:
    """Coordinates sessions, runs and notifications.

    Usage:
        controller = AgentController(orchestrator, history, database_manager)

        session = await controller.start_or_continue_session(intent, channel)
        await controller.cancel(session.id)

    The database manager only needs ``active_client`` and
    ``active_connection`` attributes.
    """

    def __init__(
        self,
        orchestrator: AgentOrchestrator,
        history: IHistoryStore,
        database,
        config: Optional[ControllerConfig] = None,
        registry: Optional[ActiveRunRegistry] = None,
    ):
        self.orchestrator = orchestrator
        self.history = history
        self.database = database
        self.config = config or ControllerConfig()
        self.registry = registry or ActiveRunRegistry()
        self._tasks: set[asyncio.Task] = set()

    # ============================================
    # Public API
    # ============================================

    async def start_or_continue_session(
        self,
        intent: str,
        channel: IEventChannel,
        existing_session_id: Optional[str] = None,
    ) -> AgentSession:
        """Start a run for ``intent`` and return the running session.

        The run continues in the background; its events go to ``channel``.

        Raises:
            NoActiveConnectionError: If no database is connected
            SessionAlreadyRunningError: If the session already has a run
        """
        connection = self.database.active_connection
        client = self.database.active_client
        if connection is None or client is None:
            raise NoActiveConnectionError()

        streamer = EventStreamer(channel, chunk_size=self.config.stream_chunk_size)

        session: Optional[AgentSession] = None
        prior_messages: list[AgentMessage] = []
        if existing_session_id:
            existing = await self.history.get_session_with_messages(existing_session_id)
            if existing.session is not None:
                session = existing.session
                prior_messages = list(existing.messages)
            else:
                logger.info(
                    f"Session {existing_session_id} not found; starting a new one"
                )

        if session is None:
            session = await self.history.create_session(
                CreateSessionInput(
                    title=intent[:TITLE_MAX_LENGTH] or DEFAULT_TITLE,
                    connection_id=connection.id,
                    status=SessionStatus.RUNNING,
                    last_message=intent,
                )
            )
            logger.info(f"Created agent session {session.id}")
            await streamer.emit(AgentStreamEvent.session_started(session))

        run = self.registry.reserve(session.id, channel)
        streamer.session_id = session.id

        try:
            user_message = await self.history.append_message(
                session.id,
                MessageInput(
                    role=MessageRole.USER,
                    content=intent,
                    metadata={"type": MessageType.USER.value},
                ),
            )
            await streamer.emit(AgentStreamEvent.message_event(session.id, user_message))

            updated = await self.history.update_session(
                session.id,
                SessionUpdate(status=SessionStatus.RUNNING, last_message=intent),
            )
        except BaseException:
            self.registry.release(run)
            raise

        running_session = updated or replace(
            session, status=SessionStatus.RUNNING, last_message=intent
        )
        tool_context = ToolContext.from_client(client, connection)
        history = prior_messages + [user_message]

        task = asyncio.create_task(
            self._run(run, streamer, intent, history, tool_context),
            name=f"agent-run-{session.id}",
        )
        run.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_task_exception_handler)

        return running_session

    async def cancel(self, session_id: str) -> bool:
        """Stop the active run for ``session_id``.

        Returns False when the session has no active run.
        """
        run = self.registry.get(session_id)
        if run is None:
            return False

        run.token.cancel()
        self.registry.release(run)
        logger.info(f"Cancelled run for session {session_id}")

        await self.history.update_session(
            session_id, SessionUpdate(status=SessionStatus.ERROR)
        )
        streamer = EventStreamer(run.channel, session_id)
        await streamer.emit(AgentStreamEvent.status_event(session_id, SessionStatus.ERROR))
        return True

    async def list_sessions(self, limit: int = 50) -> list[AgentSession]:
        return await self.history.list_sessions(limit)

    async def get_session_with_messages(self, session_id: str) -> SessionWithMessages:
        return await self.history.get_session_with_messages(session_id)

    def is_running(self, session_id: str) -> bool:
        return self.registry.is_active(session_id)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Cancel every active run and wait for the run tasks to finish."""
        timeout = self.config.shutdown_timeout if timeout is None else timeout

        for run in self.registry.active_runs():
            await self.cancel(run.session_id)

        tasks = [task for task in self._tasks if not task.done()]
        if not tasks:
            return

        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            logger.warning(f"Run task {task.get_name()} did not stop; cancelling")
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ============================================
    # Run loop
    # ============================================

    async def _run(
        self,
        run: ActiveRun,
        streamer: EventStreamer,
        intent: str,
        history: Sequence[AgentMessage],
        tool_context: ToolContext,
    ) -> None:
        session_id = run.session_id
        final_text: Optional[str] = None

        try:
            async for event in self.orchestrator.run(
                session_id,
                intent,
                history,
                tool_context,
                cancel_token=run.token,
            ):
                if isinstance(event, FinalEvent):
                    final_text = event.text
                await self._handle_event(session_id, streamer, event)

            if run.token.is_cancelled:
                logger.info(f"Run for session {session_id} ended after cancellation")
                return

            await self.history.update_session(
                session_id,
                SessionUpdate(status=SessionStatus.COMPLETED, last_message=final_text),
            )
            await streamer.emit(
                AgentStreamEvent.status_event(session_id, SessionStatus.COMPLETED)
            )
            logger.info(f"Run for session {session_id} completed")

        except Exception as e:
            logger.exception(f"Run for session {session_id} failed: {e}")
            try:
                await self.history.update_session(
                    session_id, SessionUpdate(status=SessionStatus.ERROR)
                )
            except Exception as store_error:
                logger.error(
                    f"Could not mark session {session_id} as failed: {store_error}"
                )
            await streamer.emit(AgentStreamEvent.error_event(session_id, error_message(e)))

        finally:
            self.registry.release(run)

    async def _handle_event(
        self,
        session_id: str,
        streamer: EventStreamer,
        event: OrchestratorEvent,
    ) -> None:
        if isinstance(event, ThoughtEvent):
            message = await self.history.append_message(
                session_id,
                MessageInput(
                    role=MessageRole.ASSISTANT,
                    content=event.text,
                    metadata={"type": MessageType.THOUGHT.value},
                ),
            )
            await streamer.emit(AgentStreamEvent.message_event(session_id, message))

        elif isinstance(event, ActionEvent):
            message = await self.history.append_message(
                session_id,
                MessageInput(
                    role=MessageRole.ASSISTANT,
                    content=f"Calling tool {event.tool}",
                    metadata={"type": MessageType.TOOL_CALL.value, "input": event.input},
                ),
            )
            await streamer.emit(
                AgentStreamEvent.tool_call(session_id, event.tool, event.input)
            )
            await streamer.emit(AgentStreamEvent.message_event(session_id, message))

        elif isinstance(event, ObservationEvent):
            message = await self.history.append_message(
                session_id,
                MessageInput(
                    role=MessageRole.TOOL,
                    content=event.output,
                    metadata={"type": MessageType.TOOL_RESULT.value, "tool": event.tool},
                ),
            )
            await streamer.emit(
                AgentStreamEvent.tool_result(session_id, event.tool, event.output)
            )
            await streamer.emit(AgentStreamEvent.message_event(session_id, message))

            if event.result_kind == SQL_SUGGESTION_KIND:
                await self._append_suggestion(session_id, streamer, event)

        elif isinstance(event, FinalEvent):
            await self._stream_final(session_id, streamer, event)

    async def _append_suggestion(
        self,
        session_id: str,
        streamer: EventStreamer,
        event: ObservationEvent,
    ) -> None:
        data = event.result_data or {}
        sql = data.get("sql")
        if not isinstance(sql, str) or not sql:
            return

        description = data.get("description")
        message = await self.history.append_message(
            session_id,
            MessageInput(
                role=MessageRole.ASSISTANT,
                content=description or DEFAULT_SUGGESTION_TEXT,
                metadata={
                    "type": MessageType.SQL_SUGGESTION.value,
                    "sql": sql,
                    "description": description,
                },
            ),
        )
        await streamer.emit(AgentStreamEvent.message_event(session_id, message))

    async def _stream_final(
        self,
        session_id: str,
        streamer: EventStreamer,
        event: FinalEvent,
    ) -> None:
        """Announce a placeholder, stream the text as tokens, then persist it."""
        message_id = str(uuid.uuid4())

        placeholder = AgentMessage(
            id=message_id,
            session_id=session_id,
            role=MessageRole.ASSISTANT,
            content="",
            metadata={"type": MessageType.FINAL.value, "streaming": True},
        )
        await streamer.emit(AgentStreamEvent.message_event(session_id, placeholder))

        await streamer.stream_tokens(message_id, event.text)

        stored = await self.history.append_message(
            session_id,
            MessageInput(
                id=message_id,
                role=MessageRole.ASSISTANT,
                content=event.text,
                metadata={"type": MessageType.FINAL.value, "reason": event.reason.value},
            ),
        )
        await streamer.emit(AgentStreamEvent.message_event(session_id, stored))
