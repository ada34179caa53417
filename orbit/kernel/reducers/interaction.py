"""Interaction reducers (calls, emails, meetings logged against entities)."""

from __future__ import annotations

from typing import Any

from orbit.kernel.reducers.common import (
    check_enum,
    copy_present,
    payload_of,
    require_absent,
    require_entity,
    require_string,
    resolve_entity_id,
    stamp_created,
    stamp_updated,
)
from orbit.kernel.reducers.links import handle_linked, handle_unlinked
from orbit.kernel.types import INTERACTION_STATUSES, INTERACTION_TYPES, Event

_UPDATABLE = ("type", "occurredAt", "scheduledFor", "summary", "status", "durationMinutes")


def _handle_logged(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    interaction_id = resolve_entity_id(event, payload)
    require_absent(doc, "interactions", "Interaction", interaction_id)
    interaction: dict[str, Any] = {
        "id": interaction_id,
        "type": check_enum(
            require_string(payload, "type", event.type), INTERACTION_TYPES, "interaction type"
        ),
        "occurredAt": require_string(payload, "occurredAt", event.type),
        "summary": payload.get("summary", ""),
        "status": check_enum(
            payload.get("status", "interaction.status.completed"),
            INTERACTION_STATUSES,
            "interaction status",
        ),
    }
    copy_present(interaction, payload, ("scheduledFor", "durationMinutes"))
    doc["interactions"][interaction_id] = stamp_created(interaction, event)
    return doc


def _handle_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    interaction = require_entity(
        doc, "interactions", "Interaction", resolve_entity_id(event, payload)
    )
    check_enum(payload.get("type"), INTERACTION_TYPES, "interaction type")
    check_enum(payload.get("status"), INTERACTION_STATUSES, "interaction status")
    copy_present(interaction, payload, _UPDATABLE)
    stamp_updated(interaction, event)
    return doc


def _handle_status_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    interaction = require_entity(
        doc, "interactions", "Interaction", resolve_entity_id(event, payload)
    )
    interaction["status"] = check_enum(
        require_string(payload, "status", event.type), INTERACTION_STATUSES, "interaction status"
    )
    copy_present(interaction, payload, ("occurredAt",))
    stamp_updated(interaction, event)
    return doc


def _handle_deleted(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    interaction_id = resolve_entity_id(event, payload)
    require_entity(doc, "interactions", "Interaction", interaction_id)
    del doc["interactions"][interaction_id]
    return doc


HANDLERS: dict[str, Any] = {
    "interaction.logged": _handle_logged,
    "interaction.updated": _handle_updated,
    "interaction.status.updated": _handle_status_updated,
    "interaction.deleted": _handle_deleted,
    "interaction.linked": handle_linked,
    "interaction.unlinked": handle_unlinked,
}
