"""Tracks the database connection the agent works against."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from .client import PostgresClient
from .models import ConnectionConfig

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the single active connection.

    Opening a new connection closes the previous one. The agent controller
    reads ``active_client``/``active_connection`` when a session starts.
    """

    def __init__(
        self,
        client_factory: Callable[[ConnectionConfig], PostgresClient] = PostgresClient,
    ):
        self._client_factory = client_factory
        self._client: Optional[PostgresClient] = None
        self._config: Optional[ConnectionConfig] = None
        self._lock = asyncio.Lock()

    @property
    def active_client(self) -> Optional[PostgresClient]:
        if self._client is not None and self._client.is_connected:
            return self._client
        return None

    @property
    def active_connection(self) -> Optional[ConnectionConfig]:
        if self.active_client is None:
            return None
        return self._config

    async def connect(self, config: ConnectionConfig) -> PostgresClient:
        """Connect to ``config`` and make it the active connection."""
        async with self._lock:
            await self._close_current()
            client = self._client_factory(config)
            await client.connect()
            self._client = client
            self._config = config
            logger.info(f"Active connection set to {config.name}")
            return client

    async def disconnect(self) -> None:
        async with self._lock:
            await self._close_current()

    async def _close_current(self) -> None:
        if self._client is not None:
            await self._client.disconnect()
        self._client = None
        self._config = None
