"""
Port interfaces (abstract base classes) for the agent module.

These define the contracts that adapters must implement.
Following the Ports & Adapters (Hexagonal) architecture pattern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ...database.models import DatabaseSchema, QueryResult
    from .entities import (
        AgentMessage,
        AgentSession,
        AgentStreamEvent,
        CreateSessionInput,
        MessageInput,
        SessionUpdate,
        SessionWithMessages,
    )


# ============================================
# LLM Provider Interface
# ============================================


class ILLMProvider(ABC):
    """Interface for LLM providers (OpenAI, Anthropic, Ollama, LM Studio).

    The agent only needs single-shot text completion; each implementation
    hides the specifics of its API behind ``complete``.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier (e.g., 'gpt-4o-mini')."""
        pass

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Return the model's full text reply to ``prompt``.

        Raises:
            LLMProviderError: If the provider call fails
        """
        pass


# ============================================
# History Storage Interface
# ============================================


class IAgentStorage(ABC):
    """Interface for persisting sessions and their messages.

    Messages are append-only; listing them returns insertion order.
    """

    @abstractmethod
    async def create_session(self, data: CreateSessionInput) -> AgentSession:
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[AgentSession]:
        pass

    @abstractmethod
    async def update_session(
        self, session_id: str, update: SessionUpdate
    ) -> Optional[AgentSession]:
        """Apply the non-None fields of ``update`` and bump ``updated_at``."""
        pass

    @abstractmethod
    async def list_sessions(self, limit: int = 50) -> list[AgentSession]:
        """Return sessions, most recently updated first."""
        pass

    @abstractmethod
    async def append_message(
        self, session_id: str, message: MessageInput
    ) -> AgentMessage:
        pass

    @abstractmethod
    async def get_messages(self, session_id: str) -> list[AgentMessage]:
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and its messages. Returns True if it existed."""
        pass


class IHistoryStore(ABC):
    """Interface the controller uses to read and write session history."""

    @abstractmethod
    async def create_session(self, data: CreateSessionInput) -> AgentSession:
        pass

    @abstractmethod
    async def append_message(
        self, session_id: str, message: MessageInput
    ) -> AgentMessage:
        pass

    @abstractmethod
    async def update_session(
        self, session_id: str, update: SessionUpdate
    ) -> Optional[AgentSession]:
        pass

    @abstractmethod
    async def get_session_with_messages(self, session_id: str) -> SessionWithMessages:
        pass

    @abstractmethod
    async def list_sessions(self, limit: int = 50) -> list[AgentSession]:
        pass


# ============================================
# Database Client Interface
# ============================================


class IDatabaseClient(ABC):
    """The slice of a database client the tools rely on."""

    @abstractmethod
    async def execute_query(self, sql: str) -> QueryResult:
        """Run one statement; server errors come back in ``QueryResult.error``."""
        pass

    @abstractmethod
    async def get_schema_metadata(self) -> DatabaseSchema:
        pass


# ============================================
# Event Channel Interface
# ============================================


class IEventChannel(ABC):
    """Outbound notification channel to the UI.

    Sending to a closed channel is a silent no-op.
    """

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        pass

    @abstractmethod
    async def send(self, event: AgentStreamEvent) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass
