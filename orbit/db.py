"""
Connection pool for the Postgres event store.

Scripts call init_pool() once, hand the pool to PostgresStore, and
close_pool() on the way out. Ad-hoc maintenance SQL goes through
transaction().
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import asyncpg

from orbit import config

pool: asyncpg.Pool | None = None


async def init_pool(dsn: str | None = None) -> asyncpg.Pool:
    """Create the shared pool. `dsn` overrides DATABASE_URL."""
    global pool
    pool = await asyncpg.create_pool(
        dsn=dsn or config.require_database_url(),
        min_size=config.settings.DB_POOL_MIN_SIZE,
        max_size=config.settings.DB_POOL_MAX_SIZE,
        command_timeout=60,
        server_settings={"application_name": "orbit-kernel"},
    )
    return pool


async def close_pool() -> None:
    global pool
    if pool is not None:
        await pool.close()
        pool = None


def get_pool() -> asyncpg.Pool:
    if pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")
    return pool


@asynccontextmanager
async def transaction():
    """
    Acquire a connection inside a transaction.

    Usage:
        async with transaction() as conn:
            await conn.execute("DELETE FROM snapshots")
    """
    async with get_pool().acquire() as conn:
        async with conn.transaction():
            yield conn
