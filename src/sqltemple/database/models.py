"""Database descriptors shared by the client and the agent tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ConnectionConfig:
    """Connection settings for one PostgreSQL database.

    Attributes:
        name: Display name of the connection
        host: Server host
        port: Server port
        database: Database name
        username: Login role
        password: Optional password
        ssl: Whether to require TLS
        id: Identifier of the saved connection, if any
    """

    name: str
    host: str
    port: int
    database: str
    username: str
    password: Optional[str] = None
    ssl: bool = False
    id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize without the password."""
        return {
            "id": self.id,
            "name": self.name,
            "type": "postgres",
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "username": self.username,
            "ssl": self.ssl,
        }


@dataclass
class ColumnInfo:
    """A result or table column."""

    name: str
    data_type: str
    nullable: bool = True
    default_value: Optional[str] = None


@dataclass
class QueryResult:
    """Outcome of one SQL statement.

    Failures are reported in ``error`` rather than raised so that the agent
    can show them to the model.
    """

    columns: list[ColumnInfo] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    duration: int = 0  # milliseconds
    error: Optional[str] = None


@dataclass
class TableInfo:
    name: str
    columns: list[ColumnInfo] = field(default_factory=list)

    @property
    def column_count(self) -> int:
        return len(self.columns)


@dataclass
class ViewInfo:
    name: str
    definition: Optional[str] = None


@dataclass
class SchemaInfo:
    name: str
    tables: list[TableInfo] = field(default_factory=list)
    views: list[ViewInfo] = field(default_factory=list)


@dataclass
class DatabaseSchema:
    """Catalog snapshot of the connected database."""

    schemas: list[SchemaInfo] = field(default_factory=list)

    def get_schema(self, name: str) -> Optional[SchemaInfo]:
        for schema in self.schemas:
            if schema.name == name:
                return schema
        return None
