"""Note reducers. Linking is shared with interactions (see links.py)."""

from __future__ import annotations

from typing import Any

from orbit.kernel.reducers.common import (
    copy_present,
    payload_of,
    require_absent,
    require_entity,
    require_string,
    resolve_entity_id,
    stamp_updated,
)
from orbit.kernel.reducers.links import handle_linked, handle_unlinked
from orbit.kernel.types import Event


def _handle_created(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    note_id = resolve_entity_id(event, payload)
    require_absent(doc, "notes", "Note", note_id)
    note: dict[str, Any] = {
        "id": note_id,
        "title": require_string(payload, "title", event.type),
        "body": payload.get("body", ""),
        # imported notes keep their original creation time
        "createdAt": payload.get("createdAt") or event.timestamp,
        "updatedAt": event.timestamp,
    }
    doc["notes"][note_id] = note
    return doc


def _handle_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    note = require_entity(doc, "notes", "Note", resolve_entity_id(event, payload))
    copy_present(note, payload, ("title", "body"))
    stamp_updated(note, event)
    return doc


def _handle_deleted(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    note_id = resolve_entity_id(event, payload)
    require_entity(doc, "notes", "Note", note_id)
    del doc["notes"][note_id]
    return doc


HANDLERS: dict[str, Any] = {
    "note.created": _handle_created,
    "note.updated": _handle_updated,
    "note.deleted": _handle_deleted,
    "note.linked": handle_linked,
    "note.unlinked": handle_unlinked,
}
