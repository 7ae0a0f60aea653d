"""
Domain entities for the database agent.

These are pure domain objects with no infrastructure dependencies.
They define the core data structures used throughout the agent module.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional, Union


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ============================================
# Sessions
# ============================================


class SessionStatus(str, Enum):
    """Lifecycle status of an agent session."""

    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class AgentSession:
    """A persisted, resumable conversation with the agent.

    Attributes:
        id: Opaque unique session identifier
        title: Session title (first part of the opening intent)
        connection_id: Database connection the session is scoped to
        status: running, completed or error
        last_message: Most recent user intent or final answer
        metadata: Free-form metadata
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    title: str
    id: str = field(default_factory=_new_id)
    connection_id: Optional[int] = None
    status: SessionStatus = SessionStatus.RUNNING
    last_message: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.updated_at is None:
            self.updated_at = self.created_at

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape sent to the UI."""
        return {
            "id": self.id,
            "connectionId": self.connection_id,
            "title": self.title,
            "status": self.status.value,
            "lastMessage": self.last_message,
            "metadata": self.metadata,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


# ============================================
# Messages
# ============================================


class MessageRole(str, Enum):
    """Role of a message in a session."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


class MessageType(str, Enum):
    """Value of ``metadata["type"]`` on persisted messages."""

    USER = "user"
    THOUGHT = "thought"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    FINAL = "final"
    SQL_SUGGESTION = "sql_suggestion"


@dataclass
class AgentMessage:
    """A single append-only message in a session.

    Insertion order is the replay order of the conversation.
    """

    session_id: str
    role: MessageRole
    content: str
    id: str = field(default_factory=_new_id)
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def message_type(self) -> Optional[str]:
        if self.metadata:
            return self.metadata.get("type")
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "role": self.role.value,
            "content": self.content,
            "metadata": self.metadata,
            "createdAt": _isoformat(self.created_at),
        }


@dataclass
class CreateSessionInput:
    """Payload for creating a session through the history store."""

    title: str
    id: Optional[str] = None
    connection_id: Optional[int] = None
    status: SessionStatus = SessionStatus.RUNNING
    last_message: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


@dataclass
class MessageInput:
    """Payload for appending a message through the history store."""

    role: MessageRole
    content: str
    metadata: Optional[dict[str, Any]] = None
    id: Optional[str] = None


@dataclass
class SessionUpdate:
    """Partial session update; ``None`` fields are left untouched."""

    status: Optional[SessionStatus] = None
    last_message: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    title: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.status is None
            and self.last_message is None
            and self.metadata is None
            and self.title is None
        )


@dataclass
class SessionWithMessages:
    """A session and its full message history (session is None if unknown)."""

    session: Optional[AgentSession]
    messages: list[AgentMessage] = field(default_factory=list)


# ============================================
# Tool System
# ============================================


@dataclass(frozen=True)
class ToolSpec:
    """Prompt-facing description of a tool.

    ``input_schema`` is a JSON schema string embedded in prompts as
    documentation; it is not used for validation.
    """

    name: str
    description: str
    input_schema: str


@dataclass
class ToolResult:
    """Result of one tool run.

    Attributes:
        summary: One-line description of the outcome
        data: Structured payload shown to the model as JSON
        kind: Optional tag the controller recognizes (e.g. ``sql_suggestion``)
    """

    summary: str
    data: Optional[dict[str, Any]] = None
    kind: Optional[str] = None


# ============================================
# Orchestrator Events
# ============================================


class FinalReason(str, Enum):
    """Why the orchestrator produced its final event."""

    ANSWER = "answer"
    STEP_BUDGET_EXHAUSTED = "step_budget_exhausted"
    CANCELLED = "cancelled"


@dataclass
class ThoughtEvent:
    text: str
    kind: Literal["thought"] = field(default="thought", init=False)


@dataclass
class ActionEvent:
    tool: str
    input: str
    kind: Literal["action"] = field(default="action", init=False)


@dataclass
class ObservationEvent:
    tool: str
    output: str
    result_kind: Optional[str] = None
    result_data: Optional[dict[str, Any]] = None
    kind: Literal["observation"] = field(default="observation", init=False)


@dataclass
class FinalEvent:
    text: str
    reason: FinalReason = FinalReason.ANSWER
    kind: Literal["final"] = field(default="final", init=False)


OrchestratorEvent = Union[ThoughtEvent, ActionEvent, ObservationEvent, FinalEvent]


# ============================================
# Outbound Notifications
# ============================================


class StreamEventType(str, Enum):
    """Types of notifications sent to the UI boundary."""

    SESSION_STARTED = "session-started"
    MESSAGE = "message"
    TOKEN = "token"
    TOOL_CALL = "tool-call"
    TOOL_RESULT = "tool-result"
    STATUS = "status"
    ERROR = "error"


@dataclass
class AgentStreamEvent:
    """A notification for the UI.

    Attributes:
        type: Notification type
        session_id: Owning session
        session: Session payload (SESSION_STARTED)
        message: Message payload (MESSAGE)
        message_id: Streaming message id (TOKEN)
        token: Text chunk (TOKEN)
        name: Tool name (TOOL_CALL, TOOL_RESULT)
        input: Raw tool input (TOOL_CALL)
        output: Observation text (TOOL_RESULT)
        status: Session status (STATUS)
        error: Error message (ERROR)
    """

    type: StreamEventType
    session_id: Optional[str] = None
    session: Optional[AgentSession] = None
    message: Optional[AgentMessage] = None
    message_id: Optional[str] = None
    token: Optional[str] = None
    name: Optional[str] = None
    input: Optional[str] = None
    output: Optional[str] = None
    status: Optional[SessionStatus] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {"type": self.type.value}
        if self.session is not None:
            result["session"] = self.session.to_dict()
        if self.session_id is not None:
            result["sessionId"] = self.session_id
        if self.message is not None:
            result["message"] = self.message.to_dict()
        if self.message_id is not None:
            result["messageId"] = self.message_id
        if self.token is not None:
            result["token"] = self.token
        if self.name is not None:
            result["name"] = self.name
        if self.input is not None:
            result["input"] = self.input
        if self.output is not None:
            result["output"] = self.output
        if self.status is not None:
            result["status"] = self.status.value
        if self.error is not None:
            result["error"] = self.error
        return result

    @classmethod
    def session_started(cls, session: AgentSession) -> AgentStreamEvent:
        return cls(type=StreamEventType.SESSION_STARTED, session=session)

    @classmethod
    def message_event(cls, session_id: str, message: AgentMessage) -> AgentStreamEvent:
        return cls(type=StreamEventType.MESSAGE, session_id=session_id, message=message)

    @classmethod
    def token_event(cls, session_id: str, message_id: str, token: str) -> AgentStreamEvent:
        return cls(
            type=StreamEventType.TOKEN,
            session_id=session_id,
            message_id=message_id,
            token=token,
        )

    @classmethod
    def tool_call(cls, session_id: str, name: str, input: str) -> AgentStreamEvent:
        return cls(
            type=StreamEventType.TOOL_CALL, session_id=session_id, name=name, input=input
        )

    @classmethod
    def tool_result(cls, session_id: str, name: str, output: str) -> AgentStreamEvent:
        return cls(
            type=StreamEventType.TOOL_RESULT,
            session_id=session_id,
            name=name,
            output=output,
        )

    @classmethod
    def status_event(cls, session_id: str, status: SessionStatus) -> AgentStreamEvent:
        return cls(type=StreamEventType.STATUS, session_id=session_id, status=status)

    @classmethod
    def error_event(cls, session_id: str, error: str) -> AgentStreamEvent:
        return cls(type=StreamEventType.ERROR, session_id=session_id, error=error)
