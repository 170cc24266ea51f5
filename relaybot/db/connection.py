"""PostgreSQL pool for the recipient directory.

Only used when DATABASE_URL is set. One pool per process; the server
lifespan opens it and closes it on shutdown.
"""

import asyncio
import logging
import os

import asyncpg
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger("relaybot.db")

SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schema.sql")

# Waits between connection attempts while the database starts up
CONNECT_RETRY_DELAYS = (1, 2, 4, 8)

_pool: Optional[asyncpg.Pool] = None


async def init_db(dsn: str, min_size: int = 1, max_size: int = 5) -> asyncpg.Pool:
    """Open the pool, retrying while the server refuses connections."""
    global _pool
    if _pool is not None:
        return _pool

    attempts = len(CONNECT_RETRY_DELAYS) + 1
    for attempt in range(1, attempts + 1):
        try:
            _pool = await asyncpg.create_pool(dsn, min_size=min_size, max_size=max_size)
            break
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            if attempt == attempts:
                logger.error(f"Recipient database unreachable after {attempts} attempts: {e}")
                raise
            delay = CONNECT_RETRY_DELAYS[attempt - 1]
            logger.warning(f"Recipient database not ready ({attempt}/{attempts}): {e}. Retrying in {delay}s")
            await asyncio.sleep(delay)

    logger.info("Recipient database pool ready")
    return _pool


async def close_db():
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


def is_initialized() -> bool:
    return _pool is not None


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Recipient database not initialized; call init_db() first")
    return _pool


def read_schema() -> str:
    with open(SCHEMA_PATH, encoding="utf-8") as f:
        return f.read()


async def apply_schema(conn) -> None:
    """Create the ``recipients`` table and index if missing (idempotent)."""
    await conn.execute(read_schema())


@asynccontextmanager
async def get_connection():
    async with get_pool().acquire() as conn:
        yield conn


@asynccontextmanager
async def get_transaction():
    """Pooled connection inside a transaction; rolled back on error."""
    async with get_pool().acquire() as conn:
        async with conn.transaction():
            yield conn
