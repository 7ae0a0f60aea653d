"""Connection pool helpers.

Example:
    pool = await create_pool(settings.history_database_url)
    async with database_connection(pool) as conn:
        rows = await conn.fetch("SELECT * FROM agent_sessions LIMIT 10")
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import asyncpg

from ..errors import ConnectionPoolError

logger = logging.getLogger(__name__)

ACQUIRE_TIMEOUT_SECONDS = 30.0


async def create_pool(
    database_url: str,
    min_size: int = 1,
    max_size: int = 5,
    command_timeout: float = 60.0,
    **kwargs,
) -> asyncpg.Pool:
    """Create a database connection pool with error handling.

    Args:
        database_url: PostgreSQL connection string
        min_size: Minimum pool connections
        max_size: Maximum pool connections
        command_timeout: Default query timeout in seconds
        **kwargs: Additional asyncpg.create_pool arguments

    Raises:
        ConnectionPoolError: If pool creation fails
    """
    try:
        pool = await asyncpg.create_pool(
            database_url,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
            **kwargs,
        )
    except (OSError, asyncpg.PostgresError) as e:
        raise ConnectionPoolError(
            f"Failed to create connection pool: {e}",
            cause=e,
        )

    logger.info(f"Connection pool created (min={min_size}, max={max_size})")
    return pool


@asynccontextmanager
async def database_connection(pool) -> AsyncIterator[Any]:
    """Acquire a pooled connection without opening a transaction.

    Raises:
        ConnectionPoolError: If the pool is missing or acquisition times out
    """
    if pool is None:
        raise ConnectionPoolError("Database connection pool is not initialized")

    try:
        conn = await asyncio.wait_for(pool.acquire(), timeout=ACQUIRE_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        raise ConnectionPoolError(
            "Timeout acquiring database connection",
            details={"timeout_seconds": ACQUIRE_TIMEOUT_SECONDS},
        )

    try:
        yield conn
    finally:
        await pool.release(conn)


@asynccontextmanager
async def database_transaction(pool) -> AsyncIterator[Any]:
    """Acquire a pooled connection inside a transaction.

    Commits on success, rolls back when the body raises.
    """
    async with database_connection(pool) as conn:
        async with conn.transaction():
            yield conn
