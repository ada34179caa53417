"""
Shared helpers for the per-entity reducers.

Every handler receives a document that apply_event has already deep-copied,
mutates that copy in place and returns it. Handlers raise kernel errors;
they never return a partially-applied document.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable

from orbit.kernel.errors import (
    DuplicateEntityError,
    EntityNotFoundError,
    InvalidPayloadError,
)
from orbit.kernel.types import Event

# ---------------------------------------------------------------------------
# Payload access
# ---------------------------------------------------------------------------


def payload_of(event: Event) -> dict[str, Any]:
    """
    A private deep copy of the payload. Values stored from it never alias
    the event, so mutating the document cannot rewrite the log.
    """
    if not isinstance(event.payload, dict):
        raise InvalidPayloadError(f"{event.type}: payload must be an object")
    return copy.deepcopy(event.payload)


def resolve_entity_id(event: Event, payload: dict[str, Any]) -> str:
    """
    The entity an event targets: payload.id or event.entity_id.
    Both may be given, but then they must agree.
    """
    payload_id = payload.get("id")
    if payload_id is not None and event.entity_id is not None and payload_id != event.entity_id:
        raise InvalidPayloadError(
            f"{event.type}: entity id mismatch (payload.id={payload_id}, entityId={event.entity_id})"
        )
    resolved = payload_id if payload_id is not None else event.entity_id
    if not isinstance(resolved, str) or not resolved:
        raise InvalidPayloadError(f"{event.type}: entity id is required")
    return resolved


def require_field(payload: dict[str, Any], key: str, event_type: str) -> Any:
    """Required, non-empty payload value."""
    value = payload.get(key)
    if value is None or value == "":
        raise InvalidPayloadError(f"{event_type}: {key} is required")
    return value


def require_string(payload: dict[str, Any], key: str, event_type: str) -> str:
    value = require_field(payload, key, event_type)
    if not isinstance(value, str):
        raise InvalidPayloadError(f"{event_type}: {key} must be a string")
    return value


def check_enum(value: Any, allowed: Iterable[str], label: str) -> Any:
    """Validate an enumerated string value. None passes through (field absent)."""
    if value is None:
        return None
    if not isinstance(value, str) or value not in allowed:
        raise InvalidPayloadError(f"Invalid {label}: {value}")
    return value


def optional_bool(payload: dict[str, Any], key: str, event_type: str, default: bool = False) -> bool:
    value = payload.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidPayloadError(f"{event_type}: {key} must be a boolean")
    return value


def is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def copy_present(target: dict[str, Any], payload: dict[str, Any], fields: Iterable[str]) -> dict[str, Any]:
    """
    Copy the listed fields that are present in the payload.
    Absent fields are left as they were (partial update).
    """
    for name in fields:
        if name in payload:
            target[name] = payload[name]
    return target


# ---------------------------------------------------------------------------
# Entity lookup
# ---------------------------------------------------------------------------


def get_entity(doc: dict[str, Any], collection: str, entity_id: str) -> dict[str, Any] | None:
    return doc[collection].get(entity_id)


def require_entity(doc: dict[str, Any], collection: str, kind: str, entity_id: Any) -> dict[str, Any]:
    entity = doc[collection].get(entity_id) if isinstance(entity_id, str) else None
    if entity is None:
        raise EntityNotFoundError(kind, str(entity_id))
    return entity


def require_absent(doc: dict[str, Any], collection: str, kind: str, entity_id: str) -> None:
    if entity_id in doc[collection]:
        raise DuplicateEntityError(kind, entity_id)


def stamp_created(entity: dict[str, Any], event: Event) -> dict[str, Any]:
    entity["createdAt"] = event.timestamp
    entity["updatedAt"] = event.timestamp
    return entity


def stamp_updated(entity: dict[str, Any], event: Event) -> dict[str, Any]:
    entity["updatedAt"] = event.timestamp
    return entity
