"""
Tests for the PostgresStore adapter.

Requires a running Postgres instance with the event_log and snapshots
tables (alembic upgrade head). Skipped when DATABASE_URL is not set.
"""

import os

import pytest

from orbit import db
from orbit.kernel.document import document_json
from orbit.kernel.persistence import (
    append_events,
    load_persisted_state,
    persist_snapshot_and_events,
    verify_replay_equivalence,
)
from orbit.kernel.postgres_storage import PostgresStore
from orbit.kernel.reducer import replay


@pytest.fixture
async def db_pool():
    """Initialize the shared pool and start from empty tables."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set")

    pool = await db.init_pool(database_url)
    async with db.transaction() as conn:
        await conn.execute("DELETE FROM event_log")
        await conn.execute("DELETE FROM snapshots")
    yield pool
    await db.close_pool()


@pytest.fixture
async def storage(db_pool):
    return PostgresStore(db_pool)


class TestPostgresStore:
    """PostgresStore append / select / snapshot operations."""

    @pytest.mark.asyncio
    async def test_append_and_load(self, storage, history):
        await append_events(storage, history)
        state = await load_persisted_state(storage)
        assert [e.id for e in state.events] == [e.id for e in history]
        assert document_json(state.doc) == document_json(replay(history))

    @pytest.mark.asyncio
    async def test_duplicate_ids_ignored(self, storage, history):
        await append_events(storage, history)
        await append_events(storage, history[:2])
        rows = await storage.select_events()
        assert len(rows) == len(history)

    @pytest.mark.asyncio
    async def test_snapshot_persisted_with_events(self, storage, history):
        await persist_snapshot_and_events(storage, replay(history), history[-1], history)
        snapshots = await storage.select_snapshots()
        assert len(snapshots) == 1
        assert snapshots[0].timestamp == history[-1].timestamp
        assert snapshots[0].event_id == history[-1].id
        assert await verify_replay_equivalence(storage)

    @pytest.mark.asyncio
    async def test_clear(self, storage, history):
        await persist_snapshot_and_events(storage, replay(history), history[-1], history)
        await storage.clear()
        assert await storage.select_events() == []
        assert await storage.select_snapshots() == []

    @pytest.mark.asyncio
    async def test_rows_written_in_a_transaction_are_visible(self, storage, history):
        record = history[0].to_record()
        async with db.transaction() as conn:
            await conn.execute(
                "INSERT INTO event_log (id, type, entity_id, payload, timestamp, device_id) "
                "VALUES ($1, $2, $3, $4, $5, $6)",
                record["id"], record["type"], record["entity_id"], record["payload"],
                record["timestamp"], record["device_id"],
            )
        state = await load_persisted_state(storage)
        assert "org-1" in state.doc["organizations"]
