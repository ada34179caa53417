"""
Orbit Kernel — Entity Timeline

History view for one entity: every event that touched it, plus the notes
and interactions linked to it, oldest first. Built from the document and
the full in-memory event list that load_persisted_state keeps.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from orbit.kernel.types import Event
from orbit.models.entities import Interaction, Note, decode_interaction, decode_note

# Payload key that references each entity type
_REFERENCE_KEYS: dict[str, str] = {
    "organization": "organizationId",
    "account": "accountId",
    "contact": "contactId",
    "note": "noteId",
    "interaction": "interactionId",
    "calendarEvent": "calendarEventId",
}


@dataclass(frozen=True)
class TimelineItem:
    kind: str  # "event" | "note" | "interaction"
    timestamp: str
    item_id: str
    event: Event | None = None
    note: Note | None = None
    interaction: Interaction | None = None


def is_event_related(event: Event, entity_type: str, entity_id: str) -> bool:
    if event.entity_id == entity_id:
        return True
    payload = event.payload
    if not isinstance(payload, dict):
        return False
    if payload.get("id") == entity_id:
        return True
    if payload.get("entityId") == entity_id and payload.get("entityType") == entity_type:
        return True
    key = _REFERENCE_KEYS.get(entity_type)
    return key is not None and payload.get(key) == entity_id


def build_timeline(
    doc: dict[str, Any],
    events: Iterable[Event],
    entity_type: str,
    entity_id: str,
) -> list[TimelineItem]:
    items: list[TimelineItem] = [
        TimelineItem(kind="event", timestamp=e.timestamp, item_id=e.id, event=e)
        for e in events
        if is_event_related(e, entity_type, entity_id)
    ]

    for link in doc["relations"]["entityLinks"].values():
        if link.get("entityType") != entity_type or link.get("entityId") != entity_id:
            continue
        if link.get("linkType") == "note":
            note = decode_note(doc["notes"].get(link.get("noteId")))
            if note is not None:
                items.append(
                    TimelineItem(kind="note", timestamp=note.created_at or "", item_id=note.id, note=note)
                )
        elif link.get("linkType") == "interaction":
            interaction = decode_interaction(doc["interactions"].get(link.get("interactionId")))
            if interaction is not None:
                items.append(
                    TimelineItem(
                        kind="interaction",
                        timestamp=interaction.occurred_at,
                        item_id=interaction.id,
                        interaction=interaction,
                    )
                )

    if entity_type == "interaction":
        interaction = decode_interaction(doc["interactions"].get(entity_id))
        if interaction is not None:
            items.append(
                TimelineItem(
                    kind="interaction",
                    timestamp=interaction.occurred_at,
                    item_id=interaction.id,
                    interaction=interaction,
                )
            )

    return sorted(items, key=lambda item: (item.timestamp, item.item_id))
