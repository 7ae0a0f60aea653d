"""Session history persistence."""

from .history import AgentHistoryStore
from .storage import InMemoryAgentStorage, PostgresAgentStorage

__all__ = [
    "AgentHistoryStore",
    "InMemoryAgentStorage",
    "PostgresAgentStorage",
]
