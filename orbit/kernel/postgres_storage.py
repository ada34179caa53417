"""
PostgresStore adapter for the Orbit persistence layer.

Implements the EventStore protocol on top of an asyncpg pool.
Tables are created by the alembic migrations:
- event_log: append-only event rows (payload as JSON text)
- snapshots: full documents tagged with the last event they were folded through
"""

from __future__ import annotations

from typing import Any

import asyncpg

from orbit.kernel.persistence import EventStore
from orbit.kernel.types import SnapshotRecord

_INSERT_EVENT = """
    INSERT INTO event_log (id, type, entity_id, payload, timestamp, device_id)
    VALUES ($1, $2, $3, $4, $5, $6)
    ON CONFLICT (id) DO NOTHING
"""

_INSERT_SNAPSHOT = """
    INSERT INTO snapshots (id, doc, timestamp, event_id)
    VALUES ($1, $2, $3, $4)
"""


def _snapshot_args(record: SnapshotRecord) -> tuple[Any, ...]:
    return (record.id, record.doc, record.timestamp, record.event_id)


def _event_args(record: dict[str, Any]) -> tuple[Any, ...]:
    return (
        record["id"],
        record["type"],
        record["entity_id"],
        record["payload"],
        record["timestamp"],
        record["device_id"],
    )


class PostgresStore(EventStore):
    """Postgres-backed event log and snapshot storage."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def insert_events(self, records: list[dict[str, Any]]) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(_INSERT_EVENT, [_event_args(r) for r in records])

    async def select_events(self) -> list[dict[str, Any]]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT id, type, entity_id, payload, timestamp, device_id FROM event_log"
            )
            return [dict(row) for row in rows]

    async def insert_snapshot(self, record: SnapshotRecord) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(_INSERT_SNAPSHOT, *_snapshot_args(record))

    async def select_snapshots(self) -> list[SnapshotRecord]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT id, doc, timestamp, event_id FROM snapshots")
            return [
                SnapshotRecord(id=r["id"], doc=r["doc"], timestamp=r["timestamp"], event_id=r["event_id"])
                for r in rows
            ]

    async def delete_snapshots(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute("DELETE FROM snapshots")

    async def persist(self, snapshot: SnapshotRecord, records: list[dict[str, Any]]) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                if records:
                    await conn.executemany(_INSERT_EVENT, [_event_args(r) for r in records])
                await conn.execute(_INSERT_SNAPSHOT, *_snapshot_args(snapshot))

    async def clear(self) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM event_log")
                await conn.execute("DELETE FROM snapshots")

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()
