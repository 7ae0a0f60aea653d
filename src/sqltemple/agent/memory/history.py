"""History store used by the agent controller."""

from __future__ import annotations

import logging
from typing import Optional

from ..domain.entities import (
    AgentMessage,
    AgentSession,
    CreateSessionInput,
    MessageInput,
    SessionUpdate,
    SessionWithMessages,
)
from ..domain.ports import IAgentStorage, IHistoryStore

logger = logging.getLogger(__name__)


class AgentHistoryStore(IHistoryStore):
    """Thin façade over a storage backend.

    Usage:
        history = AgentHistoryStore(InMemoryAgentStorage())
        session = await history.create_session(CreateSessionInput(title="Orders"))
        await history.append_message(session.id, MessageInput(role=..., content=...))
    """

    def __init__(self, storage: IAgentStorage):
        self.storage = storage

    async def create_session(self, data: CreateSessionInput) -> AgentSession:
        return await self.storage.create_session(data)

    async def append_message(
        self, session_id: str, message: MessageInput
    ) -> AgentMessage:
        return await self.storage.append_message(session_id, message)

    async def update_session(
        self, session_id: str, update: SessionUpdate
    ) -> Optional[AgentSession]:
        if update.is_empty():
            return await self.storage.get_session(session_id)
        return await self.storage.update_session(session_id, update)

    async def get_session_with_messages(self, session_id: str) -> SessionWithMessages:
        session = await self.storage.get_session(session_id)
        if session is None:
            return SessionWithMessages(session=None, messages=[])
        messages = await self.storage.get_messages(session_id)
        return SessionWithMessages(session=session, messages=messages)

    async def list_sessions(self, limit: int = 50) -> list[AgentSession]:
        return await self.storage.list_sessions(limit)

    async def delete_session(self, session_id: str) -> bool:
        return await self.storage.delete_session(session_id)
