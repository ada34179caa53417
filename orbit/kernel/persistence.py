"""
Orbit Kernel — Persistence / Replay Protocol

Two append-only tables behind an async storage interface:

    event_log  (id, type, entity_id, payload JSON text, timestamp, device_id)
    snapshots  (id, doc JSON text, timestamp, event_id)

Load = latest snapshot + replay of the events that sort after the last event
the snapshot folded in (timestamp, then event id), or a full replay when there is no usable snapshot. Snapshots are an
optimization only: deleting every snapshot and replaying the whole log
must give the identical document.

This is where IO happens. The reducer is pure.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from orbit.kernel.document import document_json, documents_equal, normalize_document
from orbit.kernel.errors import PersistenceIOError, ReplayError
from orbit.kernel.events import events_after, next_entity_id, position_key, sort_events
from orbit.kernel.reducer import replay
from orbit.kernel.types import Event, LoadedState, SnapshotRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class EventStore:
    """
    Abstract storage interface.
    Implement with Postgres for production, or in-memory for tests.
    Row order returned by select_* is never trusted.
    """

    async def insert_events(self, records: list[dict[str, Any]]) -> None:
        """Append event rows. Rows whose id already exists are ignored."""
        raise NotImplementedError

    async def select_events(self) -> list[dict[str, Any]]:
        """All event rows, in no particular order."""
        raise NotImplementedError

    async def insert_snapshot(self, record: SnapshotRecord) -> None:
        raise NotImplementedError

    async def select_snapshots(self) -> list[SnapshotRecord]:
        raise NotImplementedError

    async def delete_snapshots(self) -> None:
        """Drop every snapshot (forces the next load to replay the full log)."""
        raise NotImplementedError

    async def persist(self, snapshot: SnapshotRecord, records: list[dict[str, Any]]) -> None:
        """Write a snapshot and event rows in one transaction."""
        raise NotImplementedError

    async def clear(self) -> None:
        """Remove all events and snapshots (backup restore in replace mode)."""
        raise NotImplementedError


class MemoryStore(EventStore):
    """In-memory storage for testing."""

    def __init__(self) -> None:
        self.events: dict[str, dict[str, Any]] = {}
        self.snapshots: list[SnapshotRecord] = []

    async def insert_events(self, records: list[dict[str, Any]]) -> None:
        for record in records:
            self.events.setdefault(record["id"], dict(record))

    async def select_events(self) -> list[dict[str, Any]]:
        return [dict(r) for r in self.events.values()]

    async def insert_snapshot(self, record: SnapshotRecord) -> None:
        self.snapshots.append(record)

    async def select_snapshots(self) -> list[SnapshotRecord]:
        return list(self.snapshots)

    async def delete_snapshots(self) -> None:
        self.snapshots.clear()

    async def persist(self, snapshot: SnapshotRecord, records: list[dict[str, Any]]) -> None:
        # Build both changes before touching state so a failure leaves nothing behind.
        events = dict(self.events)
        for record in records:
            events.setdefault(record["id"], dict(record))
        self.events = events
        self.snapshots.append(snapshot)

    async def clear(self) -> None:
        self.events.clear()
        self.snapshots.clear()


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def storage_call(label: str, awaitable):
    """Await a storage operation, surfacing any failure as PersistenceIOError."""
    try:
        return await awaitable
    except PersistenceIOError:
        raise
    except Exception as e:
        raise PersistenceIOError(f"{label} failed: {e}") from e


async def append_events(store: EventStore, events: Iterable[Event]) -> int:
    """Append events to the durable log. Returns how many were written."""
    records = [e.to_record() for e in events]
    if not records:
        return 0
    await storage_call("append events", store.insert_events(records))
    logger.debug("appended %d events", len(records))
    return len(records)


def make_snapshot(doc: dict[str, Any], through: Event) -> SnapshotRecord:
    return SnapshotRecord(
        id=next_entity_id("snapshot"),
        doc=document_json(doc),
        timestamp=through.timestamp,
        event_id=through.id,
    )


def snapshot_sort_key(record: SnapshotRecord) -> tuple[Any, ...]:
    return (*position_key(record.timestamp, record.event_id), record.id)


async def save_snapshot(store: EventStore, doc: dict[str, Any], through: Event) -> SnapshotRecord:
    """
    Persist a full document tagged with `through`, the canonically last
    event folded into it.
    """
    record = make_snapshot(doc, through)
    await storage_call("save snapshot", store.insert_snapshot(record))
    logger.info("snapshot %s saved through %s", record.id, through.id)
    return record


async def persist_snapshot_and_events(
    store: EventStore,
    doc: dict[str, Any],
    through: Event,
    events: Iterable[Event],
) -> SnapshotRecord:
    """Write events and the snapshot that includes them atomically."""
    record = make_snapshot(doc, through)
    await storage_call("persist snapshot and events", store.persist(record, [e.to_record() for e in events]))
    logger.info("snapshot %s persisted with events through %s", record.id, through.id)
    return record


async def load_latest_snapshot(store: EventStore) -> tuple[dict[str, Any], SnapshotRecord] | None:
    """
    The newest snapshot as (document, record), or None.

    A snapshot that does not parse is treated as absent: the event log is
    always sufficient to rebuild state.
    """
    snapshots = await storage_call("load snapshots", store.select_snapshots())
    if not snapshots:
        return None
    latest = max(snapshots, key=snapshot_sort_key)
    try:
        doc = json.loads(latest.doc)
        if not isinstance(doc, dict):
            raise ValueError("snapshot document is not an object")
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        logger.warning("ignoring corrupt snapshot %s (%s); replaying full log", latest.id, e)
        return None
    return normalize_document(doc), latest


async def load_events(store: EventStore) -> list[Event]:
    """The full log in canonical order."""
    rows = await storage_call("load events", store.select_events())
    events = []
    for row in rows:
        try:
            events.append(Event.from_record(row))
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ReplayError(str(row.get("id")), str(row.get("type")), e) from e
    return sort_events(events)


async def load_persisted_state(store: EventStore) -> LoadedState:
    """
    Rebuild the document from storage.

    1. Load the latest usable snapshot (if any).
    2. Load the full event log; sort canonically.
    3. Replay the events sorting after the snapshot's last event onto it,
       or all events onto an empty document.

    The full event list is returned for timeline and audit-trail views.
    """
    events = await load_events(store)
    snapshot = await load_latest_snapshot(store)

    if snapshot is not None:
        base, record = snapshot
        trailing = events_after(events, record.timestamp, record.event_id)
        doc = replay(trailing, base=base)
        logger.info(
            "loaded state from snapshot through %s + %d events (%d total)",
            record.event_id or record.timestamp, len(trailing), len(events),
        )
        return LoadedState(
            doc=doc,
            events=events,
            snapshot_timestamp=record.timestamp,
            snapshot_event_id=record.event_id,
            replayed=len(trailing),
        )

    doc = replay(events)
    logger.info("loaded state by full replay of %d events", len(events))
    return LoadedState(doc=doc, events=events, replayed=len(events))


async def verify_replay_equivalence(store: EventStore) -> bool:
    """True when snapshot + trailing replay equals a full replay of the log."""
    loaded = await load_persisted_state(store)
    full = replay(loaded.events)
    same = documents_equal(loaded.doc, full)
    if not same:
        logger.warning("snapshot at %s diverges from full replay", loaded.snapshot_timestamp)
    return same
