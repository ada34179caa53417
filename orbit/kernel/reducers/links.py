"""
Entity link reducers (note / interaction / calendar event <-> entity).

Link records live in relations.entityLinks keyed by their own id:

    {"linkType": "note", "noteId": ..., "entityType": "account", "entityId": ...}

The source key depends on linkType (noteId, interactionId, calendarEventId).
Deleting a source or target entity never removes its links; only an
explicit *.unlinked event does.
"""

from __future__ import annotations

from typing import Any

from orbit.kernel.errors import DuplicateEntityError, EntityNotFoundError, InvalidPayloadError
from orbit.kernel.reducers.common import (
    check_enum,
    payload_of,
    require_entity,
    require_string,
    resolve_entity_id,
)
from orbit.kernel.types import (
    ENTITY_TYPE_COLLECTIONS,
    LINK_SOURCE_KEYS,
    LINKABLE_ENTITY_TYPES,
    Event,
)

_KINDS: dict[str, str] = {
    "organization": "Organization",
    "account": "Account",
    "audit": "Audit",
    "contact": "Contact",
    "note": "Note",
    "interaction": "Interaction",
    "calendarEvent": "CalendarEvent",
}


def link_type_for(event: Event) -> str:
    """note.linked -> note, calendarEvent.unlinked -> calendarEvent."""
    prefix = event.type.split(".", 1)[0]
    if prefix not in LINK_SOURCE_KEYS:
        raise InvalidPayloadError(f"Unsupported entity link event: {event.type}")
    return prefix


def _links(doc: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return doc["relations"]["entityLinks"]


def find_link(
    doc: dict[str, Any], link_type: str, source_id: str, entity_type: str, entity_id: str
) -> str | None:
    source_key = LINK_SOURCE_KEYS[link_type]
    for link_id, link in _links(doc).items():
        if (
            link.get("linkType") == link_type
            and link.get(source_key) == source_id
            and link.get("entityType") == entity_type
            and link.get("entityId") == entity_id
        ):
            return link_id
    return None


def ensure_target(doc: dict[str, Any], entity_type: Any, entity_id: Any) -> None:
    check_enum(entity_type, LINKABLE_ENTITY_TYPES, "entity link type")
    if entity_type is None:
        raise InvalidPayloadError("entityType is required for linking.")
    require_entity(doc, ENTITY_TYPE_COLLECTIONS[entity_type], _KINDS[entity_type], entity_id)


def add_link(
    doc: dict[str, Any],
    link_id: str,
    link_type: str,
    source_id: str,
    entity_type: str,
    entity_id: str,
) -> None:
    """Insert a link record after checking both endpoints and uniqueness."""
    if not isinstance(link_id, str) or not link_id:
        raise InvalidPayloadError("Entity link id must be a non-empty string.")
    require_entity(doc, ENTITY_TYPE_COLLECTIONS[link_type], _KINDS[link_type], source_id)
    ensure_target(doc, entity_type, entity_id)
    if link_id in _links(doc):
        raise DuplicateEntityError("EntityLink", link_id)
    existing = find_link(doc, link_type, source_id, entity_type, entity_id)
    if existing is not None:
        raise DuplicateEntityError(
            "EntityLink",
            f"{link_type}={source_id} entityType={entity_type} entityId={entity_id} ({existing})",
        )
    _links(doc)[link_id] = {
        "linkType": link_type,
        LINK_SOURCE_KEYS[link_type]: source_id,
        "entityType": entity_type,
        "entityId": entity_id,
    }


def _link_id(event: Event, payload: dict[str, Any], link_type: str) -> str | None:
    if payload.get("linkId") is not None:
        if not isinstance(payload["linkId"], str):
            raise InvalidPayloadError(f"{event.type}: linkId must be a string")
        return payload["linkId"]
    # calendarEvent.* events carry the calendar event id as entityId
    if link_type == "calendarEvent":
        return None
    if payload.get("id") is not None or event.entity_id is not None:
        return resolve_entity_id(event, payload)
    return None


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def handle_linked(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    link_type = link_type_for(event)
    link_id = _link_id(event, payload, link_type)
    if not link_id:
        raise InvalidPayloadError(f"{event.type}: link id is required")
    source_key = LINK_SOURCE_KEYS[link_type]
    source_id = require_string(payload, source_key, event.type)
    entity_type = require_string(payload, "entityType", event.type)
    entity_id = require_string(payload, "entityId", event.type)
    add_link(doc, link_id, link_type, source_id, entity_type, entity_id)
    return doc


def handle_unlinked(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    """
    Remove a link by id, or by (source, entityType, entityId) when no id is given.
    The linked entities need not exist any more.
    """
    payload = payload_of(event)
    link_type = link_type_for(event)
    link_id = _link_id(event, payload, link_type)
    if link_id is None:
        source_id = payload.get(LINK_SOURCE_KEYS[link_type])
        entity_type = payload.get("entityType")
        entity_id = payload.get("entityId")
        if not (source_id and entity_type and entity_id):
            raise InvalidPayloadError(f"{event.type}: link id is required")
        link_id = find_link(doc, link_type, source_id, entity_type, entity_id)
        if link_id is None:
            raise EntityNotFoundError(
                "EntityLink", f"{link_type}={source_id} entityType={entity_type} entityId={entity_id}"
            )
    link = _links(doc).get(link_id)
    if link is None:
        raise EntityNotFoundError("EntityLink", link_id)
    if link.get("linkType") != link_type:
        raise InvalidPayloadError(
            f"{event.type}: link {link_id} is a {link.get('linkType')} link"
        )
    del _links(doc)[link_id]
    return doc
