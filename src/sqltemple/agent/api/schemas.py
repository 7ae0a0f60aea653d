"""
Pydantic schemas for the agent API.

Defines request/response models for the REST endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ...database.models import ConnectionConfig
from ..domain.entities import AgentMessage, AgentSession


# =============================================================================
# Constants
# =============================================================================

MAX_INTENT_LENGTH = 10000


# =============================================================================
# Connection Schemas
# =============================================================================


class ConnectionRequest(BaseModel):
    """Database to connect the agent to."""

    name: str = Field(..., min_length=1)
    host: str = Field(..., min_length=1)
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    password: Optional[str] = None
    ssl: bool = False
    id: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "local",
                "host": "localhost",
                "port": 5432,
                "database": "shop",
                "username": "postgres",
                "password": "postgres",
                "ssl": False,
                "id": 1,
            }
        }

    def to_config(self) -> ConnectionConfig:
        return ConnectionConfig(
            id=self.id,
            name=self.name,
            host=self.host,
            port=self.port,
            database=self.database,
            username=self.username,
            password=self.password,
            ssl=self.ssl,
        )


class ConnectionResponse(BaseModel):
    connected: bool
    connection: Optional[dict[str, Any]] = None


# =============================================================================
# Session Schemas
# =============================================================================


class StartSessionRequest(BaseModel):
    """Start a new session or continue an existing one.

    Progress is delivered over the WebSocket.
    """

    intent: str = Field(..., min_length=1, max_length=MAX_INTENT_LENGTH)
    session_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "intent": "Which customers placed the most orders last month?",
                "session_id": None,
            }
        }


class SessionResponse(BaseModel):
    id: str
    connection_id: Optional[int] = None
    title: str
    status: str
    last_message: Optional[str] = None
    metadata: dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, session: AgentSession) -> SessionResponse:
        return cls(
            id=session.id,
            connection_id=session.connection_id,
            title=session.title,
            status=session.status.value,
            last_message=session.last_message,
            metadata=session.metadata or {},
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class MessageResponse(BaseModel):
    """A message in a session."""

    id: str
    session_id: str
    role: str
    content: str
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime

    @classmethod
    def from_entity(cls, message: AgentMessage) -> MessageResponse:
        return cls(
            id=message.id,
            session_id=message.session_id,
            role=message.role.value,
            content=message.content,
            metadata=message.metadata,
            created_at=message.created_at,
        )


class SessionDetailResponse(BaseModel):
    session: SessionResponse
    messages: list[MessageResponse] = []
    running: bool = False


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]
    total: int
    limit: int


class CancelResponse(BaseModel):
    session_id: str
    cancelled: bool


# =============================================================================
# Query Assistant Schemas
# =============================================================================

MAX_SQL_LENGTH = 100000


class CreateQueryRequest(BaseModel):
    """Plain-language request to turn into SQL for the active database."""

    request: str = Field(..., min_length=1, max_length=MAX_INTENT_LENGTH)

    class Config:
        json_schema_extra = {
            "example": {"request": "Top 5 customers by total order value"}
        }


class QueryRequest(BaseModel):
    """A SQL statement to explain, optimize or analyze.

    ``plan`` is an EXPLAIN (FORMAT JSON) result; when omitted it is fetched
    from the active connection.
    """

    sql: str = Field(..., min_length=1, max_length=MAX_SQL_LENGTH)
    plan: Optional[Any] = None
    include_schema: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "sql": "SELECT * FROM orders WHERE customer_id = 42",
                "plan": None,
                "include_schema": True,
            }
        }


class SqlResponse(BaseModel):
    sql: str


class TextResponse(BaseModel):
    text: str
