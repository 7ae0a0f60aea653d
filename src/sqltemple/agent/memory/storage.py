"""
Session storage implementations.

PostgresAgentStorage persists sessions and messages with asyncpg.
InMemoryAgentStorage keeps them in process memory and is used when no
history database is configured.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from ...database.pool import database_connection, database_transaction
from ..domain.entities import (
    AgentMessage,
    AgentSession,
    CreateSessionInput,
    MessageInput,
    MessageRole,
    SessionStatus,
    SessionUpdate,
)
from ..domain.ports import IAgentStorage

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS agent_sessions (
    id TEXT PRIMARY KEY,
    connection_id INTEGER,
    title TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'running',
    last_message TEXT,
    metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS agent_messages (
    seq BIGSERIAL PRIMARY KEY,
    id TEXT NOT NULL UNIQUE,
    session_id TEXT NOT NULL REFERENCES agent_sessions(id) ON DELETE CASCADE,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    metadata JSONB,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_agent_messages_session
    ON agent_messages (session_id, seq);
CREATE INDEX IF NOT EXISTS idx_agent_sessions_updated
    ON agent_sessions (updated_at DESC);
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _load_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def _dump_json(value: Optional[dict[str, Any]]) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str)


def _row_to_session(row) -> AgentSession:
    return AgentSession(
        id=row["id"],
        connection_id=row["connection_id"],
        title=row["title"],
        status=SessionStatus(row["status"]),
        last_message=row["last_message"],
        metadata=_load_json(row["metadata"]) or {},
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_message(row) -> AgentMessage:
    return AgentMessage(
        id=row["id"],
        session_id=row["session_id"],
        role=MessageRole(row["role"]),
        content=row["content"],
        metadata=_load_json(row["metadata"]),
        created_at=row["created_at"],
    )


# ============================================
# PostgreSQL
# ============================================


class PostgresAgentStorage(IAgentStorage):
    """PostgreSQL-based session storage.

    Messages are ordered by a serial column so replay order is insertion
    order even when timestamps collide.

    Usage:
        pool = await create_pool(settings.history_database_url)
        storage = PostgresAgentStorage(pool)
        await storage.ensure_schema()
    """

    def __init__(self, db_pool):
        self.db = db_pool

    async def ensure_schema(self) -> None:
        async with database_connection(self.db) as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("Agent history tables ready")

    async def create_session(self, data: CreateSessionInput) -> AgentSession:
        session_id = data.id or str(uuid.uuid4())
        async with database_connection(self.db) as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO agent_sessions (
                    id, connection_id, title, status, last_message, metadata
                ) VALUES ($1, $2, $3, $4, $5, $6::jsonb)
                RETURNING *
                """,
                session_id,
                data.connection_id,
                data.title,
                data.status.value,
                data.last_message,
                _dump_json(data.metadata or {}),
            )

        logger.info(f"Created agent session {session_id}")
        return _row_to_session(row)

    async def get_session(self, session_id: str) -> Optional[AgentSession]:
        async with database_connection(self.db) as conn:
            row = await conn.fetchrow(
                "SELECT * FROM agent_sessions WHERE id = $1", session_id
            )
        return _row_to_session(row) if row else None

    async def update_session(
        self, session_id: str, update: SessionUpdate
    ) -> Optional[AgentSession]:
        assignments = ["updated_at = NOW()"]
        args: list[Any] = [session_id]

        if update.status is not None:
            args.append(update.status.value)
            assignments.append(f"status = ${len(args)}")
        if update.last_message is not None:
            args.append(update.last_message)
            assignments.append(f"last_message = ${len(args)}")
        if update.metadata is not None:
            args.append(_dump_json(update.metadata))
            assignments.append(f"metadata = ${len(args)}::jsonb")
        if update.title is not None:
            args.append(update.title)
            assignments.append(f"title = ${len(args)}")

        async with database_connection(self.db) as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE agent_sessions
                SET {", ".join(assignments)}
                WHERE id = $1
                RETURNING *
                """,
                *args,
            )
        return _row_to_session(row) if row else None

    async def list_sessions(self, limit: int = 50) -> list[AgentSession]:
        async with database_connection(self.db) as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM agent_sessions
                ORDER BY updated_at DESC
                LIMIT $1
                """,
                limit,
            )
        return [_row_to_session(row) for row in rows]

    async def append_message(
        self, session_id: str, message: MessageInput
    ) -> AgentMessage:
        message_id = message.id or str(uuid.uuid4())
        async with database_transaction(self.db) as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO agent_messages (id, session_id, role, content, metadata)
                VALUES ($1, $2, $3, $4, $5::jsonb)
                RETURNING id, session_id, role, content, metadata, created_at
                """,
                message_id,
                session_id,
                message.role.value,
                message.content,
                _dump_json(message.metadata),
            )
            await conn.execute(
                "UPDATE agent_sessions SET updated_at = NOW() WHERE id = $1",
                session_id,
            )

        logger.debug(f"Appended {message.role.value} message to session {session_id}")
        return _row_to_message(row)

    async def get_messages(self, session_id: str) -> list[AgentMessage]:
        async with database_connection(self.db) as conn:
            rows = await conn.fetch(
                """
                SELECT id, session_id, role, content, metadata, created_at
                FROM agent_messages
                WHERE session_id = $1
                ORDER BY seq ASC
                """,
                session_id,
            )
        return [_row_to_message(row) for row in rows]

    async def delete_session(self, session_id: str) -> bool:
        async with database_connection(self.db) as conn:
            result = await conn.execute(
                "DELETE FROM agent_sessions WHERE id = $1", session_id
            )
        deleted = result.endswith(" 1")
        if deleted:
            logger.info(f"Deleted agent session {session_id}")
        return deleted


# ============================================
# In-memory
# ============================================


class InMemoryAgentStorage(IAgentStorage):
    """Process-local storage. Contents are lost on restart."""

    def __init__(self):
        self._sessions: dict[str, AgentSession] = {}
        self._messages: dict[str, list[AgentMessage]] = {}

    async def create_session(self, data: CreateSessionInput) -> AgentSession:
        session = AgentSession(
            title=data.title,
            connection_id=data.connection_id,
            status=data.status,
            last_message=data.last_message,
            metadata=dict(data.metadata or {}),
        )
        if data.id:
            session.id = data.id
        self._sessions[session.id] = session
        self._messages[session.id] = []
        logger.info(f"Created agent session {session.id}")
        return _copy_session(session)

    async def get_session(self, session_id: str) -> Optional[AgentSession]:
        session = self._sessions.get(session_id)
        return _copy_session(session) if session is not None else None

    async def update_session(
        self, session_id: str, update: SessionUpdate
    ) -> Optional[AgentSession]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if update.status is not None:
            session.status = update.status
        if update.last_message is not None:
            session.last_message = update.last_message
        if update.metadata is not None:
            session.metadata = dict(update.metadata)
        if update.title is not None:
            session.title = update.title
        session.updated_at = _utcnow()
        return _copy_session(session)

    async def list_sessions(self, limit: int = 50) -> list[AgentSession]:
        sessions = sorted(
            self._sessions.values(), key=lambda s: s.updated_at, reverse=True
        )
        return [_copy_session(s) for s in sessions[:limit]]

    async def append_message(
        self, session_id: str, message: MessageInput
    ) -> AgentMessage:
        if session_id not in self._sessions:
            raise KeyError(f"Unknown session {session_id}")
        record = AgentMessage(
            session_id=session_id,
            role=message.role,
            content=message.content,
            metadata=dict(message.metadata) if message.metadata is not None else None,
        )
        if message.id:
            record.id = message.id
        self._messages[session_id].append(record)
        self._sessions[session_id].updated_at = record.created_at
        return replace(record)

    async def get_messages(self, session_id: str) -> list[AgentMessage]:
        return [replace(m) for m in self._messages.get(session_id, [])]

    async def delete_session(self, session_id: str) -> bool:
        self._messages.pop(session_id, None)
        return self._sessions.pop(session_id, None) is not None


def _copy_session(session: AgentSession) -> AgentSession:
    """Detached copy so callers never see later in-place updates."""
    metadata = dict(session.metadata) if session.metadata is not None else None
    return replace(session, metadata=metadata)
