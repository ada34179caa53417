"""
Orbit Kernel — Backup Export / Import

A backup is the whole event log (canonical order) plus the latest snapshot,
as one JSON document. Import either merges the backup's events into the
local log or replaces local storage with it.

Merging can add events older than an existing snapshot. Snapshots are then
dropped so the next load replays the full, merged log.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Literal

from pydantic import ValidationError

from orbit.kernel.errors import BackupFormatError
from orbit.kernel.events import EVENT_TYPES, sort_events
from orbit.kernel.persistence import EventStore, append_events, load_events, snapshot_sort_key, storage_call
from orbit.kernel.types import Event, SnapshotRecord, now_iso
from orbit.models.backup import BACKUP_VERSION, Backup, BackupEvent, BackupSnapshot, ImportResult

logger = logging.getLogger(__name__)

_EVENT_TYPE_SET = set(EVENT_TYPES)


def _to_event(item: BackupEvent) -> Event:
    return Event(
        id=item.id,
        type=item.type,
        entity_id=item.entity_id,
        payload=item.payload,
        timestamp=item.timestamp,
        device_id=item.device_id,
    )


def _to_backup_event(event: Event) -> BackupEvent:
    return BackupEvent(
        id=event.id,
        type=event.type,
        entity_id=event.entity_id,
        payload=event.payload,
        timestamp=event.timestamp,
        device_id=event.device_id,
    )


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


async def create_backup(store: EventStore, device_id: str, app_version: str | None = None) -> Backup:
    events = await load_events(store)
    snapshots = await storage_call("load snapshots", store.select_snapshots())
    latest = max(snapshots, key=snapshot_sort_key) if snapshots else None
    return Backup(
        version=BACKUP_VERSION,
        created_at=now_iso(),
        device_id=device_id,
        app_version=app_version,
        events=[_to_backup_event(e) for e in events],
        snapshot=BackupSnapshot(**latest.to_dict()) if latest else None,
    )


def serialize_backup(backup: Backup) -> str:
    return backup.model_dump_json(by_alias=True)


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------


def parse_backup(raw: str | bytes | dict[str, Any], *, max_bytes: int | None = None) -> Backup:
    """
    Validate a backup file.

    Rejects oversize input, unknown versions, unregistered event types and
    duplicate event ids with BackupFormatError.
    """
    if isinstance(raw, (str, bytes)):
        size = len(raw.encode() if isinstance(raw, str) else raw)
        if max_bytes is not None and size > max_bytes:
            raise BackupFormatError(f"Backup is {size} bytes; limit is {max_bytes}.")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise BackupFormatError(f"Backup is not valid JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise BackupFormatError("Invalid backup payload.")
    if data.get("version") != BACKUP_VERSION:
        raise BackupFormatError("Unsupported backup version.")

    try:
        backup = Backup.model_validate(data)
    except ValidationError as e:
        raise BackupFormatError(f"Invalid backup: {e.errors()[:3]}") from e

    seen: set[str] = set()
    for item in backup.events:
        if item.type not in _EVENT_TYPE_SET:
            raise BackupFormatError(f"Invalid event.type: {item.type}.")
        if item.id in seen:
            raise BackupFormatError(f"Duplicate event id: {item.id}.")
        seen.add(item.id)
    return backup


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


async def import_backup(
    store: EventStore,
    backup: Backup,
    mode: Literal["merge", "replace"] = "merge",
) -> ImportResult:
    events = sort_events(_to_event(item) for item in backup.events)

    if mode == "replace":
        await storage_call("clear store", store.clear())
        if backup.snapshot is not None:
            snapshot = SnapshotRecord(**backup.snapshot.model_dump())
            await storage_call("restore snapshot", store.persist(snapshot, [e.to_record() for e in events]))
            applied = True
        else:
            await append_events(store, events)
            applied = False
        logger.info("backup restored: %d events (snapshot=%s)", len(events), applied)
        return ImportResult(
            mode="replace",
            events_imported=len(events),
            events_skipped=0,
            snapshot_applied=applied,
        )

    existing = {e.id for e in await load_events(store)}
    fresh = [e for e in events if e.id not in existing]
    if fresh:
        await append_events(store, fresh)
        # Merged events may predate a snapshot; force a full replay next load.
        await storage_call("drop snapshots", store.delete_snapshots())
    logger.info("backup merged: %d new, %d already present", len(fresh), len(events) - len(fresh))
    return ImportResult(
        mode="merge",
        events_imported=len(fresh),
        events_skipped=len(events) - len(fresh),
        snapshot_applied=False,
    )
