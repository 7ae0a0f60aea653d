"""Database access for the active PostgreSQL connection.

Provides:
- PostgresClient for statement execution and catalog metadata
- DatabaseManager tracking the connection the agent works against
- Pool helpers for the history store
"""

from .client import PostgresClient
from .manager import DatabaseManager
from .models import (
    ColumnInfo,
    ConnectionConfig,
    DatabaseSchema,
    QueryResult,
    SchemaInfo,
    TableInfo,
    ViewInfo,
)
from .pool import create_pool, database_connection, database_transaction

__all__ = [
    "PostgresClient",
    "DatabaseManager",
    "ColumnInfo",
    "ConnectionConfig",
    "DatabaseSchema",
    "QueryResult",
    "SchemaInfo",
    "TableInfo",
    "ViewInfo",
    "create_pool",
    "database_connection",
    "database_transaction",
]
