"""
Calendar event reducers.

A calendar event is the scheduled form of a meeting, call, task or audit.
Type and status values are namespaced (`calendarEvent.type.audit`,
`calendarEvent.status.completed`); the short forms older clients wrote
(`audit`, `completed`) are normalized on the way in.

Audit-type events carry `auditData {accountId, score?, floorsVisited?}` and
always require an accountId.
"""

from __future__ import annotations

import logging
from typing import Any

from orbit.kernel.errors import InvalidPayloadError, InvariantViolation
from orbit.kernel.reducers.common import (
    check_enum,
    copy_present,
    is_int,
    payload_of,
    require_absent,
    require_entity,
    require_string,
    resolve_entity_id,
    stamp_created,
    stamp_updated,
)
from orbit.kernel.reducers.links import add_link, handle_linked, handle_unlinked
from orbit.kernel.types import (
    CALENDAR_EVENT_STATUSES,
    CALENDAR_EVENT_TYPES,
    RECURRENCE_FREQUENCIES,
    Event,
)

logger = logging.getLogger(__name__)

AUDIT_TYPE = "calendarEvent.type.audit"


# ---------------------------------------------------------------------------
# Normalization / validation
# ---------------------------------------------------------------------------


def _normalize(value: Any, namespace: str) -> Any:
    if isinstance(value, str) and value and "." not in value:
        return f"{namespace}.{value}"
    return value


def _status(value: Any) -> str | None:
    return check_enum(
        _normalize(value, "calendarEvent.status"), CALENDAR_EVENT_STATUSES, "calendar event status"
    )


def _type(value: Any) -> str | None:
    return check_enum(
        _normalize(value, "calendarEvent.type"), CALENDAR_EVENT_TYPES, "calendar event type"
    )


def _duration(value: Any) -> int | None:
    if value is None:
        return None
    if not is_int(value) or value <= 0:
        raise InvalidPayloadError("Calendar event durationMinutes must be a positive integer.")
    return value


def _recurrence(rule: Any) -> dict[str, Any]:
    if not isinstance(rule, dict):
        raise InvalidPayloadError("recurrenceRule must be an object.")
    check_enum(rule.get("frequency"), RECURRENCE_FREQUENCIES, "recurrence frequency")
    if rule.get("frequency") is None:
        raise InvalidPayloadError("recurrenceRule.frequency is required.")
    interval = rule.get("interval", 1)
    if not is_int(interval) or interval <= 0:
        raise InvalidPayloadError("recurrenceRule.interval must be a positive integer.")
    count = rule.get("count")
    if count is not None and (not is_int(count) or count <= 0):
        raise InvalidPayloadError("recurrenceRule.count must be a positive integer.")
    for key, low, high in (("byWeekDay", 0, 6), ("byMonthDay", 1, 31)):
        days = rule.get(key)
        if days is None:
            continue
        if not isinstance(days, list) or not all(is_int(d) and low <= d <= high for d in days):
            raise InvalidPayloadError(f"recurrenceRule.{key} must list integers in {low}..{high}.")
    checked = dict(rule)
    checked["interval"] = interval
    return checked


def _merge_audit_data(entity: dict[str, Any], payload: dict[str, Any], action: str) -> None:
    account_id = payload.get("accountId") or (entity.get("auditData") or {}).get("accountId")
    if not account_id:
        raise InvariantViolation(f"Audit events require accountId {action}.")
    audit_data = dict(entity.get("auditData") or {})
    audit_data["accountId"] = account_id
    copy_present(audit_data, payload, ("score", "floorsVisited"))
    entity["auditData"] = audit_data


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _handle_scheduled(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    cal_id = resolve_entity_id(event, payload)
    require_absent(doc, "calendarEvents", "CalendarEvent", cal_id)
    scheduled_for = require_string(payload, "scheduledFor", event.type)
    cal_type = _type(require_string(payload, "type", event.type))
    if cal_type == AUDIT_TYPE and not payload.get("accountId"):
        raise InvariantViolation("Audit events require accountId.")

    entity: dict[str, Any] = {
        "id": cal_id,
        "type": cal_type,
        "status": _status(payload.get("status")) or "calendarEvent.status.scheduled",
        "scheduledFor": scheduled_for,
    }
    copy_present(entity, payload, ("summary", "description", "location", "recurrenceId"))
    duration = _duration(payload.get("durationMinutes"))
    if duration is not None:
        entity["durationMinutes"] = duration
    if payload.get("recurrenceRule") is not None:
        entity["recurrenceRule"] = _recurrence(payload["recurrenceRule"])
    if cal_type == AUDIT_TYPE:
        entity["auditData"] = {"accountId": payload["accountId"]}
    stamp_created(entity, event)
    # migrated and imported events keep their original creation time
    if isinstance(payload.get("createdAt"), str) and payload["createdAt"]:
        entity["createdAt"] = payload["createdAt"]
    doc["calendarEvents"][cal_id] = entity

    for link in payload.get("linkedEntities") or []:
        link_id = link.get("linkId") if isinstance(link, dict) else None
        if not link_id:
            raise InvalidPayloadError("Linked entities require a linkId.")
        add_link(doc, link_id, "calendarEvent", cal_id, link.get("entityType"), link.get("entityId"))

    logger.debug("calendar event scheduled: %s (%s)", cal_id, cal_type)
    return doc


def _handle_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    entity = require_entity(
        doc, "calendarEvents", "CalendarEvent", resolve_entity_id(event, payload)
    )
    if "type" in payload:
        entity["type"] = _type(payload["type"])
    copy_present(entity, payload, ("summary", "description", "location"))
    duration = _duration(payload.get("durationMinutes"))
    if duration is not None:
        entity["durationMinutes"] = duration
    if entity["type"] == AUDIT_TYPE and (
        "accountId" in payload
        or "score" in payload
        or "floorsVisited" in payload
        or not entity.get("auditData")
    ):
        _merge_audit_data(entity, payload, "for updates")
    stamp_updated(entity, event)
    return doc


def _handle_completed(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    entity = require_entity(
        doc, "calendarEvents", "CalendarEvent", resolve_entity_id(event, payload)
    )
    entity["occurredAt"] = require_string(payload, "occurredAt", event.type)
    entity["status"] = "calendarEvent.status.completed"
    if payload.get("description"):
        entity["description"] = payload["description"]
    if entity["type"] == AUDIT_TYPE:
        _merge_audit_data(entity, payload, "when completing")
    stamp_updated(entity, event)
    return doc


def _handle_canceled(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    entity = require_entity(
        doc, "calendarEvents", "CalendarEvent", resolve_entity_id(event, payload)
    )
    entity["status"] = "calendarEvent.status.canceled"
    if entity["type"] == AUDIT_TYPE:
        _merge_audit_data(entity, payload, "when canceling")
    stamp_updated(entity, event)
    return doc


def _handle_rescheduled(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    entity = require_entity(
        doc, "calendarEvents", "CalendarEvent", resolve_entity_id(event, payload)
    )
    entity["scheduledFor"] = require_string(payload, "scheduledFor", event.type)
    entity["status"] = "calendarEvent.status.scheduled"
    entity.pop("occurredAt", None)
    stamp_updated(entity, event)
    return doc


def _handle_deleted(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    # Entity links to the event stay until calendarEvent.unlinked removes them.
    payload = payload_of(event)
    cal_id = resolve_entity_id(event, payload)
    require_entity(doc, "calendarEvents", "CalendarEvent", cal_id)
    del doc["calendarEvents"][cal_id]
    return doc


def _handle_recurrence_created(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    cal_id = resolve_entity_id(event, payload)
    entity = require_entity(doc, "calendarEvents", "CalendarEvent", cal_id)
    if entity.get("recurrenceRule"):
        raise InvariantViolation(
            f"Calendar event {cal_id} already has a recurrence rule. "
            "Use calendarEvent.recurrence.updated instead."
        )
    entity["recurrenceRule"] = _recurrence(payload.get("recurrenceRule"))
    stamp_updated(entity, event)
    return doc


def _handle_recurrence_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    cal_id = resolve_entity_id(event, payload)
    entity = require_entity(doc, "calendarEvents", "CalendarEvent", cal_id)
    if not entity.get("recurrenceRule"):
        raise InvariantViolation(
            f"Calendar event {cal_id} does not have a recurrence rule. "
            "Use calendarEvent.recurrence.created instead."
        )
    entity["recurrenceRule"] = _recurrence(payload.get("recurrenceRule"))
    stamp_updated(entity, event)
    return doc


def _handle_recurrence_deleted(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    entity = require_entity(
        doc, "calendarEvents", "CalendarEvent", resolve_entity_id(event, payload)
    )
    entity.pop("recurrenceRule", None)
    stamp_updated(entity, event)
    return doc


HANDLERS: dict[str, Any] = {
    "calendarEvent.scheduled": _handle_scheduled,
    "calendarEvent.updated": _handle_updated,
    "calendarEvent.completed": _handle_completed,
    "calendarEvent.canceled": _handle_canceled,
    "calendarEvent.rescheduled": _handle_rescheduled,
    "calendarEvent.deleted": _handle_deleted,
    "calendarEvent.linked": handle_linked,
    "calendarEvent.unlinked": handle_unlinked,
    "calendarEvent.recurrence.created": _handle_recurrence_created,
    "calendarEvent.recurrence.updated": _handle_recurrence_updated,
    "calendarEvent.recurrence.deleted": _handle_recurrence_deleted,
}
