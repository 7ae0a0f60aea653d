"""
SQLTemple Database Agent Module.

An autonomous co-pilot that investigates a live PostgreSQL database by
calling tools in a bounded reason-act loop, streaming each step to the UI.

Architecture:
- Domain: Core entities and port interfaces
- Tools: Schema inspection, SQL execution, query suggestion, catalog search
- Orchestrator: Reasoning loop, controller, run registry, event streaming
- Memory: Session history storage (PostgreSQL or in-memory)
- Providers: LLM provider implementations (OpenAI, Anthropic, Ollama, LM Studio)
- Assistant: One-shot SQL writing, explanation and plan review
- API: FastAPI router and WebSocket streaming
"""

# Domain entities
from .domain.entities import (
    ActionEvent,
    AgentMessage,
    AgentSession,
    AgentStreamEvent,
    FinalEvent,
    FinalReason,
    MessageRole,
    ObservationEvent,
    SessionStatus,
    StreamEventType,
    ThoughtEvent,
    ToolResult,
    ToolSpec,
)

# Assistant
from .assistant import QueryAssistant

# Memory
from .memory import AgentHistoryStore, InMemoryAgentStorage, PostgresAgentStorage

# Orchestrator
from .orchestrator import (
    AgentConfig,
    AgentController,
    AgentOrchestrator,
    CancellationToken,
    ControllerConfig,
    QueueEventChannel,
)

# Providers
from .providers import (
    AnthropicProvider,
    LLMProviderConfig,
    LLMProviderError,
    LMStudioProvider,
    OllamaProvider,
    OpenAIProvider,
    create_provider,
)

# Tools
from .tools import ToolContext, ToolRegistry, build_default_tools

__all__ = [
    # Domain
    "ActionEvent",
    "AgentMessage",
    "AgentSession",
    "AgentStreamEvent",
    "FinalEvent",
    "FinalReason",
    "MessageRole",
    "ObservationEvent",
    "SessionStatus",
    "StreamEventType",
    "ThoughtEvent",
    "ToolResult",
    "ToolSpec",
    # Memory
    "AgentHistoryStore",
    "InMemoryAgentStorage",
    "PostgresAgentStorage",
    # Orchestrator
    "AgentConfig",
    "AgentController",
    "AgentOrchestrator",
    "CancellationToken",
    "ControllerConfig",
    "QueueEventChannel",
    # Providers
    "AnthropicProvider",
    "LLMProviderConfig",
    "LLMProviderError",
    "LMStudioProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "create_provider",
    # Tools
    "ToolContext",
    "ToolRegistry",
    "build_default_tools",
    # Assistant
    "QueryAssistant",
]
