"""Domain entities and port interfaces for the agent module."""

from .entities import (
    ActionEvent,
    AgentMessage,
    AgentSession,
    AgentStreamEvent,
    CreateSessionInput,
    FinalEvent,
    FinalReason,
    MessageInput,
    MessageRole,
    MessageType,
    ObservationEvent,
    OrchestratorEvent,
    SessionStatus,
    SessionUpdate,
    SessionWithMessages,
    StreamEventType,
    ThoughtEvent,
    ToolResult,
    ToolSpec,
)
from .ports import (
    IAgentStorage,
    IDatabaseClient,
    IEventChannel,
    IHistoryStore,
    ILLMProvider,
)

__all__ = [
    # Entities
    "ActionEvent",
    "AgentMessage",
    "AgentSession",
    "AgentStreamEvent",
    "CreateSessionInput",
    "FinalEvent",
    "FinalReason",
    "MessageInput",
    "MessageRole",
    "MessageType",
    "ObservationEvent",
    "OrchestratorEvent",
    "SessionStatus",
    "SessionUpdate",
    "SessionWithMessages",
    "StreamEventType",
    "ThoughtEvent",
    "ToolResult",
    "ToolSpec",
    # Ports
    "IAgentStorage",
    "IDatabaseClient",
    "IEventChannel",
    "IHistoryStore",
    "ILLMProvider",
]
