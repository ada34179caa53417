"""
Audit reducers.

Floors visited must be unique integers inside the audited account's
allowed floor range.
"""

from __future__ import annotations

from typing import Any

from orbit.kernel.errors import InvalidPayloadError
from orbit.kernel.reducers.account import allowed_floors
from orbit.kernel.reducers.common import (
    copy_present,
    is_int,
    payload_of,
    require_absent,
    require_entity,
    require_field,
    require_string,
    resolve_entity_id,
    stamp_created,
    stamp_updated,
)
from orbit.kernel.types import Event


def _check_floors(account: dict[str, Any], floors: Any) -> None:
    if not floors:
        return
    if not isinstance(floors, list):
        raise InvalidPayloadError("Audit floorsVisited must be a list.")
    allowed = allowed_floors(account)
    if allowed is None:
        raise InvalidPayloadError("Account floor range is not configured for audits.")
    if not all(is_int(f) for f in floors):
        raise InvalidPayloadError("Audit floors visited must be integers.")
    if len(set(floors)) != len(floors):
        raise InvalidPayloadError("Audit floors visited must be unique.")
    for floor in floors:
        if floor not in allowed:
            raise InvalidPayloadError(f"Audit floor {floor} is not allowed for this account.")


def _handle_created(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    audit_id = resolve_entity_id(event, payload)
    account_id = require_string(payload, "accountId", event.type)
    scheduled_for = require_string(payload, "scheduledFor", event.type)
    require_absent(doc, "audits", "Audit", audit_id)
    account = require_entity(doc, "accounts", "Account", account_id)
    _check_floors(account, payload.get("floorsVisited"))

    audit: dict[str, Any] = {
        "id": audit_id,
        "accountId": account_id,
        "scheduledFor": scheduled_for,
    }
    copy_present(audit, payload, ("notes", "floorsVisited", "durationMinutes"))
    doc["audits"][audit_id] = stamp_created(audit, event)
    return doc


def _handle_rescheduled(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    audit = require_entity(doc, "audits", "Audit", resolve_entity_id(event, payload))
    audit["scheduledFor"] = require_string(payload, "scheduledFor", event.type)
    stamp_updated(audit, event)
    return doc


def _handle_completed(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    audit = require_entity(doc, "audits", "Audit", resolve_entity_id(event, payload))
    occurred_at = require_field(payload, "occurredAt", event.type)
    account = require_entity(doc, "accounts", "Account", audit["accountId"])
    floors = payload["floorsVisited"] if "floorsVisited" in payload else audit.get("floorsVisited")
    _check_floors(account, floors)

    audit["occurredAt"] = occurred_at
    copy_present(audit, payload, ("score", "notes", "floorsVisited"))
    stamp_updated(audit, event)
    return doc


def _handle_notes_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    audit = require_entity(doc, "audits", "Audit", resolve_entity_id(event, payload))
    audit["notes"] = payload.get("notes")
    stamp_updated(audit, event)
    return doc


def _handle_floors_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    audit = require_entity(doc, "audits", "Audit", resolve_entity_id(event, payload))
    account = require_entity(doc, "accounts", "Account", audit["accountId"])
    floors = payload.get("floorsVisited", [])
    _check_floors(account, floors)
    audit["floorsVisited"] = floors
    stamp_updated(audit, event)
    return doc


def _handle_account_reassigned(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    audit = require_entity(doc, "audits", "Audit", resolve_entity_id(event, payload))
    account_id = require_string(payload, "accountId", event.type)
    account = require_entity(doc, "accounts", "Account", account_id)
    _check_floors(account, audit.get("floorsVisited"))
    audit["accountId"] = account_id
    stamp_updated(audit, event)
    return doc


HANDLERS: dict[str, Any] = {
    "audit.created": _handle_created,
    "audit.rescheduled": _handle_rescheduled,
    "audit.completed": _handle_completed,
    "audit.notes.updated": _handle_notes_updated,
    "audit.floorsVisited.updated": _handle_floors_updated,
    "audit.account.reassigned": _handle_account_reassigned,
}
