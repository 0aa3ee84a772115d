"""Database connection management using asyncpg."""

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import asyncpg

from tournament_sync.config import get_settings

logger = logging.getLogger(__name__)

# Global connection pool, shared by every repository
_pool: asyncpg.Pool | None = None


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode json/jsonb columns (stored picks, auto subs) into Python objects."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


async def init_pool() -> asyncpg.Pool:
    """Create the pool once; later calls return the existing one."""
    global _pool
    if _pool is not None:
        return _pool

    settings = get_settings()
    db_url = settings.db_connection_string
    if not db_url:
        raise ValueError("DATABASE_URL is not set; result syncs need a database")

    logger.info(
        f"Opening database pool ({settings.db_pool_min_size}-{settings.db_pool_max_size} connections)"
    )
    _pool = await asyncpg.create_pool(
        db_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=60,
        statement_cache_size=0,  # Required for PgBouncer transaction mode
        init=_init_connection,
    )
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        logger.info("Closing database pool")
        await _pool.close()
        _pool = None


def get_pool() -> asyncpg.Pool:
    """The open pool. Raises RuntimeError before init_pool() has run."""
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")
    return _pool


@asynccontextmanager
async def get_connection() -> AsyncGenerator[asyncpg.Connection, None]:
    """Borrow a pooled connection for the duration of the block."""
    async with get_pool().acquire() as conn:
        yield conn
