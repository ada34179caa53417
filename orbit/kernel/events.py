"""
Orbit Kernel — Event Construction and Ordering

Factory functions for creating well-formed events, plus the canonical
total order every device replays in.

Ordering: timestamp, then event id (numeric-aware), then device id.
Storage order is never trusted.
"""

from __future__ import annotations

import copy
import itertools
import re
import threading
import time
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any, Iterable

from orbit.kernel.types import Event, now_iso

# ---------------------------------------------------------------------------
# Closed event type enumeration
# ---------------------------------------------------------------------------

EVENT_TYPES: tuple[str, ...] = (
    # Organization
    "organization.created",
    "organization.updated",
    "organization.status.updated",
    "organization.deleted",
    # Account
    "account.created",
    "account.updated",
    "account.status.updated",
    "account.deleted",
    # Audit
    "audit.created",
    "audit.rescheduled",
    "audit.completed",
    "audit.notes.updated",
    "audit.floorsVisited.updated",
    "audit.account.reassigned",
    # Contact
    "contact.created",
    "contact.updated",
    "contact.method.added",
    "contact.method.updated",
    "contact.deleted",
    # Account <-> contact
    "account.contact.linked",
    "account.contact.unlinked",
    "account.contact.setPrimary",
    "account.contact.unsetPrimary",
    # Note
    "note.created",
    "note.updated",
    "note.deleted",
    "note.linked",
    "note.unlinked",
    # Interaction
    "interaction.logged",
    "interaction.updated",
    "interaction.status.updated",
    "interaction.deleted",
    "interaction.linked",
    "interaction.unlinked",
    # Code
    "code.created",
    "code.updated",
    "code.encrypted",
    "code.deleted",
    # Calendar event
    "calendarEvent.scheduled",
    "calendarEvent.updated",
    "calendarEvent.completed",
    "calendarEvent.canceled",
    "calendarEvent.rescheduled",
    "calendarEvent.deleted",
    "calendarEvent.linked",
    "calendarEvent.unlinked",
    "calendarEvent.recurrence.created",
    "calendarEvent.recurrence.updated",
    "calendarEvent.recurrence.deleted",
    # Settings (device-local)
    "settings.security.updated",
    "settings.calendar.updated",
    "settings.appearance.updated",
    # Provenance
    "device.registered",
)

# ---------------------------------------------------------------------------
# Id generation
# ---------------------------------------------------------------------------

_counter = itertools.count()
_counter_lock = threading.Lock()


def next_event_id() -> str:
    """Fresh event id: `evt-{epoch_ms}-{counter}`. Never reused within a process."""
    with _counter_lock:
        n = next(_counter)
    return f"evt-{int(time.time() * 1000)}-{n}"


def next_entity_id(prefix: str) -> str:
    """Fresh entity id, e.g. `account-6f1c...`."""
    return f"{prefix}-{uuid.uuid4()}"


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def build_event(
    type: str,
    entity_id: str | None,
    payload: dict[str, Any],
    device_id: str,
    *,
    timestamp: str | None = None,
    event_id: str | None = None,
) -> Event:
    """
    Build an event at user-action time.

    Assigns a fresh id and the current timestamp and copies the payload so
    later mutation by the caller cannot leak into the log. Payload shape is
    not validated here; reducers decode it at apply time.
    """
    return Event(
        id=event_id or next_event_id(),
        type=type,
        payload=copy.deepcopy(payload),
        timestamp=timestamp or now_iso(),
        device_id=device_id,
        entity_id=entity_id,
    )


_TEST_EPOCH = datetime(2026, 1, 1, tzinfo=UTC)


def make_event(
    seq: int,
    type: str,
    payload: dict[str, Any],
    *,
    entity_id: str | None = None,
    device_id: str = "device-test",
    timestamp: str | None = None,
    event_id: str | None = None,
) -> Event:
    """
    Build a complete Event from minimal inputs.

    seq determines both the event id and a deterministic timestamp
    (one second per step), so fixtures replay identically every run.
    """
    ts = timestamp or (_TEST_EPOCH + timedelta(seconds=seq)).strftime(
        "%Y-%m-%dT%H:%M:%S.000Z"
    )
    return Event(
        id=event_id or f"evt-{seq:04d}",
        type=type,
        payload=copy.deepcopy(payload),
        timestamp=ts,
        device_id=device_id,
        entity_id=entity_id,
    )


def events_from_raw(raw: Iterable[dict[str, Any]], *, device_id: str) -> list[Event]:
    """
    Turn a batch of {type, entityId?, payload} dicts into stamped Events.

    All events in the batch share one timestamp; the per-process id counter
    keeps them in submission order.
    """
    ts = now_iso()
    return [
        build_event(
            item["type"],
            item.get("entityId"),
            item.get("payload", {}),
            device_id,
            timestamp=ts,
        )
        for item in raw
    ]


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

_DIGITS = re.compile(r"(\d+)")


def _natural_key(value: str) -> tuple[tuple[int, int, str], ...]:
    parts = []
    for chunk in _DIGITS.split(value):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append((0, int(chunk), chunk))
        else:
            parts.append((1, 0, chunk))
    return tuple(parts)


def event_sort_key(event: Event) -> tuple[Any, ...]:
    return (event.timestamp, _natural_key(event.id), event.id, event.device_id)


def sort_events(events: Iterable[Event]) -> list[Event]:
    """Canonical replay order. Returns a new list."""
    return sorted(events, key=event_sort_key)


def merge_event_logs(*logs: Iterable[Event]) -> list[Event]:
    """
    Union of several devices' logs, deduplicated by event id, in canonical order.

    Feeding the result to replay() yields the same document on every device.
    """
    seen: dict[str, Event] = {}
    for log in logs:
        for event in log:
            seen.setdefault(event.id, event)
    return sort_events(seen.values())


def position_key(timestamp: str, event_id: str | None) -> tuple[Any, ...]:
    """Sort key of a position in the log, comparable with event_sort_key(e)[:3]."""
    return (timestamp, _natural_key(event_id or ""), event_id or "")


def sorts_after(event: Event, timestamp: str, event_id: str | None = None) -> bool:
    """
    Whether `event` comes after position (timestamp, event_id) in canonical
    order. Without an event id only a strictly newer timestamp counts.
    """
    if event_id is None:
        return event.timestamp > timestamp
    return event_sort_key(event)[:3] > position_key(timestamp, event_id)


def events_after(
    events: Iterable[Event],
    timestamp: str | None,
    event_id: str | None = None,
) -> list[Event]:
    """Events positioned after (timestamp, event_id); all of them when timestamp is None."""
    if timestamp is None:
        return list(events)
    return [e for e in events if sorts_after(e, timestamp, event_id)]
