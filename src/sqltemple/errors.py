"""Exception hierarchy for SQLTemple.

This module provides a structured exception hierarchy for handling errors
across the agent, its tools, and the database layer.

Design Principles:
    - All exceptions inherit from SQLTempleError base class
    - Exceptions preserve context (original error, timestamps, details)
    - Exceptions are categorized by recoverability
    - Each exception includes actionable information

Exception Hierarchy:
    SQLTempleError (base)
    ├── ConfigurationError (unrecoverable - fix config)
    ├── AgentError (raised to the immediate caller)
    │   ├── NoActiveConnectionError
    │   └── SessionAlreadyRunningError
    ├── ToolError (absorbed by the orchestrator as an observation)
    │   ├── ToolInputError
    │   └── ToolExecutionError
    └── DatabaseError (may be recoverable)
        ├── ConnectionPoolError
        └── DatabaseNotConnectedError
"""

from datetime import datetime
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================


class SQLTempleError(Exception):
    """Base exception for all SQLTemple errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "SESSION_ALREADY_RUNNING")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether this error might be recoverable with retry
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.utcnow()
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


def error_message(error: BaseException) -> str:
    """Return the user-facing message of an exception.

    SQLTempleError.__str__ decorates the message with its code and details;
    events and notifications carry the bare message only.
    """
    if isinstance(error, SQLTempleError):
        return error.message
    return str(error)


# ============================================
# Configuration Errors (Unrecoverable)
# ============================================


class ConfigurationError(SQLTempleError):
    """Raised when configuration is missing or invalid.

    These errors require fixing configuration before retry.
    """

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


# ============================================
# Agent Errors
# ============================================


class AgentError(SQLTempleError):
    """Base class for errors raised synchronously to the agent's caller.

    These never enter the event stream.
    """


class NoActiveConnectionError(AgentError):
    """Raised when the agent is started without an active database connection."""

    def __init__(
        self,
        message: str = "Connect to a database before using the agent.",
        **kwargs,
    ):
        super().__init__(message, code="NO_ACTIVE_CONNECTION", **kwargs)


class SessionAlreadyRunningError(AgentError):
    """Raised when a run is already active for the requested session."""

    def __init__(
        self,
        session_id: str,
        message: str = "That session is already running. Please wait.",
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["session_id"] = session_id
        super().__init__(
            message,
            code="SESSION_ALREADY_RUNNING",
            details=details,
            recoverable=True,
            **kwargs,
        )
        self.session_id = session_id


# ============================================
# Tool Errors
# ============================================


class ToolError(SQLTempleError):
    """Base class for tool failures.

    The orchestrator reports these as observations and keeps going.
    """

    def __init__(self, message: str, tool: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if tool:
            details["tool"] = tool
        kwargs.setdefault("recoverable", True)
        super().__init__(message, details=details, **kwargs)
        self.tool = tool


class ToolInputError(ToolError):
    """Raised when a tool receives malformed or incomplete JSON input."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="TOOL_INPUT_ERROR", **kwargs)


class ToolExecutionError(ToolError):
    """Raised when a tool cannot produce a result."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="TOOL_EXECUTION_ERROR", **kwargs)


# ============================================
# Database Errors
# ============================================


class DatabaseError(SQLTempleError):
    """Base class for database-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class ConnectionPoolError(DatabaseError):
    """Raised when database connection pool is exhausted or unavailable."""

    def __init__(
        self,
        message: str = "Database connection pool error",
        **kwargs,
    ):
        super().__init__(message, code="CONNECTION_POOL_ERROR", **kwargs)


class DatabaseNotConnectedError(DatabaseError):
    """Raised when a query is attempted on a closed client."""

    def __init__(self, message: str = "Database not connected", **kwargs):
        kwargs.setdefault("recoverable", False)
        super().__init__(message, code="DATABASE_NOT_CONNECTED", **kwargs)


class QueryPlanError(DatabaseError):
    """Raised when PostgreSQL cannot produce a plan for a statement."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="QUERY_PLAN_ERROR", **kwargs)
