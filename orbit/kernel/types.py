"""
Orbit Kernel — Shared Types

Data classes and constants used across events, reducers, persistence and
the dispatch session. These are the contracts that bind the kernel together.

Wire format: event and document keys are camelCase (`entityId`, `deviceId`,
`calendarEvents`) so that logs exported from one device replay unchanged on
another.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# ---------------------------------------------------------------------------
# Entity collections
# ---------------------------------------------------------------------------

ENTITY_COLLECTIONS: tuple[str, ...] = (
    "organizations",
    "accounts",
    "audits",
    "contacts",
    "notes",
    "interactions",
    "codes",
    "calendarEvents",
)

# Entity type name (as used in links and selectors) -> document collection
ENTITY_TYPE_COLLECTIONS: dict[str, str] = {
    "organization": "organizations",
    "account": "accounts",
    "audit": "audits",
    "contact": "contacts",
    "note": "notes",
    "interaction": "interactions",
    "code": "codes",
    "calendarEvent": "calendarEvents",
}

# Entity types that an entity link may point at
LINKABLE_ENTITY_TYPES: set[str] = {
    "organization",
    "account",
    "audit",
    "contact",
    "note",
    "interaction",
}

# Sources of an entity link and the key holding the source id
LINK_SOURCE_KEYS: dict[str, str] = {
    "note": "noteId",
    "interaction": "interactionId",
    "calendarEvent": "calendarEventId",
}


# ---------------------------------------------------------------------------
# Enumerations (stored as namespaced strings)
# ---------------------------------------------------------------------------

ORGANIZATION_STATUSES: set[str] = {
    "organization.status.active",
    "organization.status.inactive",
}

ACCOUNT_STATUSES: set[str] = {
    "account.status.active",
    "account.status.inactive",
}

CONTACT_TYPES: set[str] = {
    "contact.type.internal",
    "contact.type.external",
    "contact.type.vendor",
}

CONTACT_METHOD_TYPES: set[str] = {"emails", "phones"}

CONTACT_METHOD_LABELS: set[str] = {
    "contact.method.label.work",
    "contact.method.label.personal",
    "contact.method.label.mobile",
    "contact.method.label.other",
}

CONTACT_METHOD_STATUSES: set[str] = {
    "contact.method.status.active",
    "contact.method.status.inactive",
}

ACCOUNT_CONTACT_ROLES: set[str] = {
    "account.contact.role.primary",
    "account.contact.role.billing",
    "account.contact.role.technical",
}

INTERACTION_TYPES: set[str] = {
    "interaction.type.call",
    "interaction.type.email",
    "interaction.type.meeting",
    "interaction.type.other",
}

INTERACTION_STATUSES: set[str] = {
    "interaction.status.scheduled",
    "interaction.status.completed",
    "interaction.status.canceled",
}

CODE_TYPES: set[str] = {
    "code.type.door",
    "code.type.gate",
    "code.type.lockbox",
    "code.type.alarm",
    "code.type.other",
}

CALENDAR_EVENT_TYPES: set[str] = {
    "calendarEvent.type.meeting",
    "calendarEvent.type.call",
    "calendarEvent.type.email",
    "calendarEvent.type.other",
    "calendarEvent.type.audit",
    "calendarEvent.type.task",
    "calendarEvent.type.reminder",
}

CALENDAR_EVENT_STATUSES: set[str] = {
    "calendarEvent.status.scheduled",
    "calendarEvent.status.completed",
    "calendarEvent.status.canceled",
}

RECURRENCE_FREQUENCIES: set[str] = {"daily", "weekly", "monthly", "yearly"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def now_iso() -> str:
    """Current UTC time as ISO 8601 with millisecond precision."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Event:
    """
    One immutable record of intent in the append-only log.
    Reducers read `type`, `entity_id`, `payload` and `timestamp`.
    """

    id: str
    type: str
    payload: dict[str, Any]
    timestamp: str  # ISO 8601 UTC
    device_id: str
    entity_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "deviceId": self.device_id,
        }
        if self.entity_id is not None:
            d["entityId"] = self.entity_id
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Event:
        return cls(
            id=d["id"],
            type=d["type"],
            payload=d.get("payload", {}),
            timestamp=d["timestamp"],
            device_id=d["deviceId"],
            entity_id=d.get("entityId"),
        )

    def to_record(self) -> dict[str, Any]:
        """Row shape of the event_log table (payload as JSON text)."""
        return {
            "id": self.id,
            "type": self.type,
            "entity_id": self.entity_id,
            "payload": json.dumps(self.payload, sort_keys=True),
            "timestamp": self.timestamp,
            "device_id": self.device_id,
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> Event:
        payload = row["payload"]
        if isinstance(payload, str):
            payload = json.loads(payload)
        return cls(
            id=row["id"],
            type=row["type"],
            payload=payload,
            timestamp=row["timestamp"],
            device_id=row["device_id"],
            entity_id=row.get("entity_id"),
        )


@dataclass
class SnapshotRecord:
    """
    A persisted document (JSON text) and the last event folded into it.

    (timestamp, event_id) is the canonical sort position of that event.
    Snapshots written before event ids were recorded carry only a timestamp.
    """

    id: str
    doc: str
    timestamp: str
    event_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "doc": self.doc, "timestamp": self.timestamp, "eventId": self.event_id}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SnapshotRecord:
        return cls(id=d["id"], doc=d["doc"], timestamp=d["timestamp"], event_id=d.get("eventId"))


@dataclass
class LoadedState:
    """Result of loading persisted state: the document plus the full history."""

    doc: dict[str, Any]
    events: list[Event] = field(default_factory=list)
    snapshot_timestamp: str | None = None
    snapshot_event_id: str | None = None
    replayed: int = 0


@dataclass
class DispatchResult:
    """What dispatch() hands back to callers. Never raises."""

    success: bool
    error: str | None = None
    error_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"success": self.success}
        if self.error is not None:
            d["error"] = self.error
        return d
