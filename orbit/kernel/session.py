"""
Orbit Kernel — Dispatch Session

Sits between the pure reducer and the outside world (callers, storage).
Owns the live document and the in-memory event list for one device.

Operations: load, dispatch, flush, snapshot, integrity_check

dispatch() is synchronous: events are folded, and on success the new
document is swapped in whole before the call returns. Durable writes
happen afterwards on the async path and never roll back a commit.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Iterable

from orbit import config
from orbit.kernel.document import document_json, empty_document
from orbit.kernel.errors import OrbitError, PersistenceIOError
from orbit.kernel.events import build_event, event_sort_key, sorts_after
from orbit.kernel.persistence import (
    EventStore,
    append_events,
    load_persisted_state,
    persist_snapshot_and_events,
    storage_call,
)
from orbit.kernel.reducer import apply_events, replay
from orbit.kernel.types import DispatchResult, Event, LoadedState, SnapshotRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Session context
# ---------------------------------------------------------------------------


class SessionContext:
    """
    Per-device session state with an explicit lifetime.
    Passed to CrmStore instead of living in module globals.
    """

    def __init__(self, device_id: str, app_version: str | None = None):
        self.device_id = device_id
        self.app_version = app_version
        self._authorized = False

    @property
    def authorized(self) -> bool:
        return self._authorized

    def authorize(self) -> None:
        self._authorized = True

    def revoke(self) -> None:
        self._authorized = False

    def requires_auth(self, security: dict[str, Any]) -> bool:
        """
        Whether the user must authenticate before the next unlock, given the
        document's security settings.
        """
        if security.get("biometricAuth") != "enabled":
            return False
        if security.get("authFrequency") == "session":
            return not self._authorized
        return True


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class CrmStore:
    """
    Live document + event list for one device, backed by an EventStore.
    """

    def __init__(
        self,
        store: EventStore,
        session: SessionContext,
        *,
        snapshot_interval: int | None = None,
    ):
        self._store = store
        self.session = session
        self.snapshot_interval = snapshot_interval
        self._doc: dict[str, Any] = empty_document()
        self._events: list[Event] = []
        self._pending: list[Event] = []
        self._since_snapshot = 0
        # (timestamp, event id) of the last event the newest snapshot covers
        self._snapshot_at: tuple[str, str | None] | None = None
        self._lock = threading.Lock()
        self._flush_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, store: EventStore, session: SessionContext) -> "CrmStore":
        """Store using ORBIT_SNAPSHOT_INTERVAL for automatic snapshots."""
        return cls(store, session, snapshot_interval=config.settings.SNAPSHOT_INTERVAL)

    # -- read access --

    @property
    def doc(self) -> dict[str, Any]:
        """Current document. Replaced, never mutated, by dispatch."""
        return self._doc

    @property
    def events(self) -> list[Event]:
        return list(self._events)

    @property
    def pending(self) -> list[Event]:
        """Committed in memory but not yet durably written."""
        return list(self._pending)

    # -- load --

    async def load(self) -> LoadedState:
        """Replace in-memory state with what storage holds."""
        state = await load_persisted_state(self._store)
        with self._lock:
            self._doc = state.doc
            self._events = list(state.events)
            self._pending = []
            self._since_snapshot = state.replayed
            self._snapshot_at = (
                (state.snapshot_timestamp, state.snapshot_event_id)
                if state.snapshot_timestamp is not None
                else None
            )
        return state

    # -- dispatch --

    def build(self, type: str, entity_id: str | None, payload: dict[str, Any]) -> Event:
        return build_event(type, entity_id, payload, self.session.device_id)

    def dispatch(self, events: Iterable[Event]) -> DispatchResult:
        """
        Apply a batch atomically.

        On any reducer error the live document is left untouched and a
        failed DispatchResult is returned; nothing is queued for persistence.
        """
        batch = list(events)
        with self._lock:
            try:
                new_doc = apply_events(self._doc, batch)
            except OrbitError as e:
                logger.info("dispatch rejected (%s): %s", type(e).__name__, e)
                return DispatchResult(success=False, error=str(e), error_type=type(e).__name__)
            except Exception as e:
                logger.exception("dispatch failed unexpectedly")
                return DispatchResult(success=False, error=str(e), error_type=type(e).__name__)

            self._doc = new_doc
            self._events = self._events + batch
            self._pending.extend(batch)

        self._schedule_flush()
        return DispatchResult(success=True)

    def register_device(self) -> DispatchResult:
        """Record this device in the log (no document change)."""
        payload: dict[str, Any] = {"deviceId": self.session.device_id}
        if self.session.app_version:
            payload["appVersion"] = self.session.app_version
        return self.dispatch([self.build("device.registered", self.session.device_id, payload)])

    # -- persistence --

    def _schedule_flush(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop: the caller flushes explicitly.
            return
        task = loop.create_task(self._background_flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _background_flush(self) -> None:
        try:
            await self.flush()
        except PersistenceIOError:
            logger.exception("persist failed; %d events remain pending", len(self._pending))

    async def drain(self) -> None:
        """Wait for background flushes started by dispatch()."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def flush(self) -> int:
        """
        Append pending events to the log. One retry; on a second failure
        raises PersistenceIOError and keeps the events pending.

        An event that sorts at or before the newest snapshot's last event
        would be skipped by the next load, so snapshots are dropped first.
        """
        async with self._flush_lock:
            with self._lock:
                batch = list(self._pending)
                snapshot_at = self._snapshot_at
            if not batch:
                return 0

            if snapshot_at is not None and any(not sorts_after(e, *snapshot_at) for e in batch):
                logger.warning(
                    "events sort before snapshot through %s; dropping snapshots",
                    snapshot_at[1] or snapshot_at[0],
                )
                await storage_call("drop snapshots", self._store.delete_snapshots())
                with self._lock:
                    self._snapshot_at = None

            try:
                await append_events(self._store, batch)
            except PersistenceIOError as e:
                logger.warning("persist of %d events failed (%s), retrying", len(batch), e)
                await append_events(self._store, batch)

            written = {e.id for e in batch}
            with self._lock:
                self._pending = [e for e in self._pending if e.id not in written]
                self._since_snapshot += len(batch)
                due = bool(self.snapshot_interval) and self._since_snapshot >= self.snapshot_interval

        if due:
            await self.snapshot()
        return len(batch)

    async def snapshot(self) -> SnapshotRecord | None:
        """
        Persist the current document, tagged with the canonically last event.
        Pending events are written in the same transaction, so a snapshot
        never covers history the log does not hold.
        """
        async with self._flush_lock:
            with self._lock:
                if not self._events:
                    return None
                doc = self._doc
                batch = list(self._pending)
                through = max(self._events, key=event_sort_key)

            record = await persist_snapshot_and_events(self._store, doc, through, batch)

            written = {e.id for e in batch}
            with self._lock:
                self._pending = [e for e in self._pending if e.id not in written]
                self._since_snapshot = 0
                self._snapshot_at = (record.timestamp, record.event_id)
        return record

    # -- integrity --

    def integrity_check(self) -> bool:
        """True when the live document equals a canonical replay of the event list."""
        with self._lock:
            doc, events = self._doc, list(self._events)
        same = document_json(doc) == document_json(replay(events))
        if not same:
            logger.warning("live document diverges from replay of %d events", len(events))
        return same
