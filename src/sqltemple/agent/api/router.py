"""
FastAPI Router for the database agent.

Provides REST endpoints for connections and sessions, and the WebSocket
that streams agent notifications to the UI.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)

from ...database.client import PostgresClient
from ...database.manager import DatabaseManager
from ...database.models import DatabaseSchema
from ...errors import (
    DatabaseError,
    NoActiveConnectionError,
    QueryPlanError,
    SessionAlreadyRunningError,
    SQLTempleError,
)
from ..assistant import QueryAssistant, fetch_query_plan
from ..memory.history import AgentHistoryStore
from ..orchestrator.controller import AgentController
from ..orchestrator.event_streamer import BroadcastEventChannel, QueueEventChannel
from ..providers.base import LLMProviderError
from .schemas import (
    CancelResponse,
    ConnectionRequest,
    ConnectionResponse,
    CreateQueryRequest,
    MessageResponse,
    QueryRequest,
    SessionDetailResponse,
    SessionListResponse,
    SessionResponse,
    SqlResponse,
    StartSessionRequest,
    TextResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agent", tags=["agent"])


# =============================================================================
# Dependencies
# =============================================================================


@dataclass
class AgentDependencies:
    """Container for agent dependencies.

    Injected at application startup.
    """

    controller: Optional[AgentController] = None
    database: Optional[DatabaseManager] = None
    history: Optional[AgentHistoryStore] = None
    broadcast: Optional[BroadcastEventChannel] = None
    assistant: Optional[QueryAssistant] = None
    channel_max_size: int = 256


_deps = AgentDependencies()


def create_agent_dependencies(
    controller: AgentController,
    database: DatabaseManager,
    history: AgentHistoryStore,
    broadcast: Optional[BroadcastEventChannel] = None,
    channel_max_size: int = 256,
    assistant: Optional[QueryAssistant] = None,
) -> AgentDependencies:
    """Initialize agent dependencies.

    Call this at application startup.
    """
    _deps.controller = controller
    _deps.database = database
    _deps.history = history
    _deps.broadcast = broadcast or BroadcastEventChannel()
    _deps.assistant = assistant
    _deps.channel_max_size = channel_max_size
    return _deps


def reset_agent_dependencies() -> None:
    """Clear dependencies (application shutdown)."""
    if _deps.broadcast is not None:
        _deps.broadcast.close()
    _deps.controller = None
    _deps.database = None
    _deps.history = None
    _deps.broadcast = None
    _deps.assistant = None


def get_controller() -> AgentController:
    """Get the agent controller dependency."""
    if not _deps.controller:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Agent not initialized",
        )
    return _deps.controller


def get_database() -> DatabaseManager:
    if not _deps.database:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database manager not initialized",
        )
    return _deps.database


def get_history() -> AgentHistoryStore:
    if not _deps.history:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="History store not initialized",
        )
    return _deps.history


def get_broadcast() -> BroadcastEventChannel:
    if _deps.broadcast is None:
        _deps.broadcast = BroadcastEventChannel()
    return _deps.broadcast


def get_assistant() -> QueryAssistant:
    if not _deps.assistant:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Query assistant not initialized",
        )
    return _deps.assistant


# =============================================================================
# Connection Endpoints
# =============================================================================


@router.get("/connection", response_model=ConnectionResponse)
async def get_connection(
    database: DatabaseManager = Depends(get_database),
) -> ConnectionResponse:
    """Report the active database connection."""
    connection = database.active_connection
    return ConnectionResponse(
        connected=connection is not None,
        connection=connection.to_dict() if connection else None,
    )


@router.post("/connection", response_model=ConnectionResponse)
async def connect_database(
    request: ConnectionRequest,
    database: DatabaseManager = Depends(get_database),
) -> ConnectionResponse:
    """Connect to a database and make it the agent's active connection."""
    config = request.to_config()
    try:
        await database.connect(config)
    except DatabaseError as e:
        logger.warning(f"Connection to {config.name} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.message,
        )
    return ConnectionResponse(connected=True, connection=config.to_dict())


@router.delete("/connection", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect_database(
    database: DatabaseManager = Depends(get_database),
) -> None:
    await database.disconnect()


# =============================================================================
# Session Endpoints
# =============================================================================


@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_session(
    request: StartSessionRequest,
    controller: AgentController = Depends(get_controller),
    broadcast: BroadcastEventChannel = Depends(get_broadcast),
) -> SessionResponse:
    """Start or continue a session.

    The run continues in the background; notifications are delivered to
    every connected WebSocket.
    """
    try:
        session = await controller.start_or_continue_session(
            request.intent, broadcast, request.session_id
        )
    except NoActiveConnectionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except SessionAlreadyRunningError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    return SessionResponse.from_entity(session)


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    limit: int = Query(default=50, ge=1, le=200),
    controller: AgentController = Depends(get_controller),
) -> SessionListResponse:
    """List sessions, most recently updated first."""
    sessions = await controller.list_sessions(limit)
    return SessionListResponse(
        sessions=[SessionResponse.from_entity(s) for s in sessions],
        total=len(sessions),
        limit=limit,
    )


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
async def get_session(
    session_id: str,
    controller: AgentController = Depends(get_controller),
) -> SessionDetailResponse:
    """Get a session with its full message history."""
    data = await controller.get_session_with_messages(session_id)
    if data.session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )

    return SessionDetailResponse(
        session=SessionResponse.from_entity(data.session),
        messages=[MessageResponse.from_entity(m) for m in data.messages],
        running=controller.is_running(session_id),
    )


@router.post("/sessions/{session_id}/cancel", response_model=CancelResponse)
async def cancel_session(
    session_id: str,
    controller: AgentController = Depends(get_controller),
) -> CancelResponse:
    """Cancel the active run of a session. Idle sessions are left untouched."""
    cancelled = await controller.cancel(session_id)
    return CancelResponse(session_id=session_id, cancelled=cancelled)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    controller: AgentController = Depends(get_controller),
    history: AgentHistoryStore = Depends(get_history),
) -> None:
    """Delete a session and its messages, cancelling any active run first."""
    await controller.cancel(session_id)
    deleted = await history.delete_session(session_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )


# =============================================================================
# Query Assistant Endpoints
# =============================================================================


@contextmanager
def _assistant_errors() -> Iterator[None]:
    """Map assistant failures to HTTP errors."""
    try:
        yield
    except QueryPlanError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except (DatabaseError, LLMProviderError) as e:
        logger.warning(f"Query assistant request failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


def _require_client(database: DatabaseManager) -> PostgresClient:
    client = database.active_client
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=NoActiveConnectionError().message,
        )
    return client


async def _optional_schema(
    database: DatabaseManager, include: bool
) -> Optional[DatabaseSchema]:
    client = database.active_client
    if not include or client is None:
        return None
    return await client.get_schema_metadata()


async def _resolve_plan(database: DatabaseManager, request: QueryRequest) -> Any:
    if request.plan is not None:
        return request.plan
    return await fetch_query_plan(_require_client(database), request.sql)


@router.post("/query/create", response_model=SqlResponse)
async def create_query(
    request: CreateQueryRequest,
    assistant: QueryAssistant = Depends(get_assistant),
    database: DatabaseManager = Depends(get_database),
) -> SqlResponse:
    """Write SQL for a plain-language request against the active database."""
    client = _require_client(database)
    with _assistant_errors():
        schema = await client.get_schema_metadata()
        sql = await assistant.create_query(request.request, schema)
    return SqlResponse(sql=sql)


@router.post("/query/explain", response_model=TextResponse)
async def explain_query(
    request: QueryRequest,
    assistant: QueryAssistant = Depends(get_assistant),
    database: DatabaseManager = Depends(get_database),
) -> TextResponse:
    """Explain a statement. Works without a connection; schema is added when connected."""
    with _assistant_errors():
        schema = await _optional_schema(database, request.include_schema)
        text = await assistant.explain_query(request.sql, schema)
    return TextResponse(text=text)


@router.post("/query/optimize", response_model=SqlResponse)
async def optimize_query(
    request: QueryRequest,
    assistant: QueryAssistant = Depends(get_assistant),
    database: DatabaseManager = Depends(get_database),
) -> SqlResponse:
    """Rewrite a statement for performance using its execution plan."""
    with _assistant_errors():
        plan = await _resolve_plan(database, request)
        schema = await _optional_schema(database, request.include_schema)
        sql = await assistant.optimize_query(request.sql, plan, schema)
    return SqlResponse(sql=sql)


@router.post("/query/analyze-plan", response_model=TextResponse)
async def analyze_query_plan(
    request: QueryRequest,
    assistant: QueryAssistant = Depends(get_assistant),
    database: DatabaseManager = Depends(get_database),
) -> TextResponse:
    """Review a statement's execution plan and suggest improvements."""
    with _assistant_errors():
        plan = await _resolve_plan(database, request)
        text = await assistant.analyze_query_plan(request.sql, plan)
    return TextResponse(text=text)


# =============================================================================
# WebSocket
# =============================================================================


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for agent notifications.

    Message formats:
    - Client -> Server:
        {"type": "start", "intent": "...", "session_id": "..."}
        {"type": "cancel", "session_id": "..."}
        {"type": "ping"}

    - Server -> Client:
        {"type": "session-started", "session": {...}}
        {"type": "message", "sessionId": "...", "message": {...}}
        {"type": "token", "sessionId": "...", "messageId": "...", "token": "..."}
        {"type": "tool-call", "sessionId": "...", "name": "...", "input": "..."}
        {"type": "tool-result", "sessionId": "...", "name": "...", "output": "..."}
        {"type": "status", "sessionId": "...", "status": "..."}
        {"type": "error", "sessionId": "...", "error": "..."}
        {"type": "pong"}
    """
    await websocket.accept()

    controller = _deps.controller
    if not controller:
        await websocket.send_json({"type": "error", "error": "Agent not initialized"})
        await websocket.close()
        return

    channel = QueueEventChannel(max_size=_deps.channel_max_size)
    broadcast = get_broadcast()
    broadcast.subscribe(channel)
    pump = asyncio.create_task(_pump_events(websocket, channel), name="agent-ws-pump")
    logger.info("Agent WebSocket connected")

    try:
        while True:
            data = await websocket.receive_json()
            msg_type = data.get("type") if isinstance(data, dict) else None

            if msg_type == "start":
                await _handle_start(websocket, controller, channel, data)

            elif msg_type == "cancel":
                session_id = data.get("session_id")
                if session_id:
                    await controller.cancel(session_id)

            elif msg_type == "ping":
                await websocket.send_json({"type": "pong"})

            else:
                await websocket.send_json(
                    {"type": "error", "error": f"Unknown message type: {msg_type}"}
                )

    except WebSocketDisconnect:
        logger.info("Agent WebSocket disconnected")
    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
    finally:
        channel.close()
        broadcast.unsubscribe(channel)
        pump.cancel()
        await asyncio.gather(pump, return_exceptions=True)


async def _handle_start(
    websocket: WebSocket,
    controller: AgentController,
    channel: QueueEventChannel,
    data: dict,
) -> None:
    intent = data.get("intent")
    if not isinstance(intent, str) or not intent.strip():
        await websocket.send_json({"type": "error", "error": "intent is required"})
        return

    try:
        await controller.start_or_continue_session(
            intent, channel, data.get("session_id") or None
        )
    except SQLTempleError as e:
        await websocket.send_json(
            {
                "type": "error",
                "sessionId": data.get("session_id"),
                "error": e.message,
                "code": e.code,
            }
        )


async def _pump_events(websocket: WebSocket, channel: QueueEventChannel) -> None:
    """Forward queued notifications to the socket until the channel closes."""
    try:
        async for event in channel:
            await websocket.send_json(event.to_dict())
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"Stopped forwarding agent events: {e}")
        channel.close()
