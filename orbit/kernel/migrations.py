"""
Orbit Kernel — Shape Migrations

Documents written before calendar events existed keep meetings and calls
as interactions and site visits as audits. The calendar event migration
turns them into calendarEvent.* events that are appended to the log like
any other user action; the document itself is never rewritten in place.

Planning is pure: plan_calendar_event_migration() reads a document and
returns the events to dispatch. Ids of planned events are derived from the
migrated entity, so two devices migrating the same history produce events
that deduplicate when their logs are merged.

Running it again is a no-op: entities that already have a calendar event
and links that already have a calendarEvent counterpart are skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from orbit.kernel.errors import MigrationError
from orbit.kernel.events import build_event
from orbit.kernel.reducers.common import is_int
from orbit.kernel.reducers.links import find_link
from orbit.kernel.types import (
    ENTITY_TYPE_COLLECTIONS,
    LINKABLE_ENTITY_TYPES,
    Event,
    now_iso,
)

if TYPE_CHECKING:
    from orbit.kernel.session import CrmStore

logger = logging.getLogger(__name__)

CALENDAR_EVENT_MIGRATION = "calendarEvent.v1"

_INTERACTION_TYPES: dict[str, str] = {
    "interaction.type.meeting": "calendarEvent.type.meeting",
    "interaction.type.call": "calendarEvent.type.call",
    "interaction.type.email": "calendarEvent.type.email",
    "interaction.type.other": "calendarEvent.type.other",
}

_INTERACTION_STATUSES: dict[str, str] = {
    "interaction.status.scheduled": "calendarEvent.status.scheduled",
    "interaction.status.completed": "calendarEvent.status.completed",
    "interaction.status.canceled": "calendarEvent.status.canceled",
}


@dataclass
class MigrationReport:
    """What a migration planned (and, once run, dispatched)."""

    migration: str
    interaction_ids: list[str] = field(default_factory=list)
    audit_ids: list[str] = field(default_factory=list)
    link_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.events)


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------


def _interaction_status(interaction: dict[str, Any]) -> str:
    status = _INTERACTION_STATUSES.get(interaction.get("status") or "")
    if status is not None:
        return status
    if interaction.get("occurredAt"):
        return "calendarEvent.status.completed"
    return "calendarEvent.status.scheduled"


def _interaction_type(interaction: dict[str, Any], report: MigrationReport) -> str:
    mapped = _INTERACTION_TYPES.get(interaction.get("type") or "")
    if mapped is None:
        report.warnings.append(
            f"Interaction {interaction['id']} has unknown type {interaction.get('type')!r}; using other"
        )
        return "calendarEvent.type.other"
    return mapped


def _lifecycle_events(
    entity_id: str,
    scheduled: dict[str, Any],
    status: str,
    completed: dict[str, Any],
    device_id: str,
    timestamp: str,
) -> list[Event]:
    """calendarEvent.scheduled, followed by calendarEvent.completed when done."""
    if status == "calendarEvent.status.canceled":
        scheduled["status"] = status
    events = [
        build_event(
            "calendarEvent.scheduled",
            entity_id,
            scheduled,
            device_id,
            timestamp=timestamp,
            event_id=f"migration:calendarEvent:{entity_id}",
        )
    ]
    if status == "calendarEvent.status.completed":
        events.append(
            build_event(
                "calendarEvent.completed",
                entity_id,
                completed,
                device_id,
                timestamp=timestamp,
                event_id=f"migration:calendarEvent:{entity_id}:completed",
            )
        )
    return events


def _interaction_events(
    interaction: dict[str, Any], report: MigrationReport, device_id: str, timestamp: str
) -> list[Event]:
    interaction_id = interaction["id"]
    status = _interaction_status(interaction)
    scheduled_for = interaction.get("scheduledFor") or interaction.get("occurredAt")
    if not scheduled_for:
        raise MigrationError(f"Interaction {interaction_id} has neither scheduledFor nor occurredAt")

    scheduled: dict[str, Any] = {
        "id": interaction_id,
        "type": _interaction_type(interaction, report),
        "scheduledFor": scheduled_for,
        "summary": interaction.get("summary", ""),
    }
    if is_int(interaction.get("durationMinutes")) and interaction["durationMinutes"] > 0:
        scheduled["durationMinutes"] = interaction["durationMinutes"]
    if interaction.get("createdAt"):
        scheduled["createdAt"] = interaction["createdAt"]

    completed = {"id": interaction_id, "occurredAt": interaction.get("occurredAt") or scheduled_for}
    return _lifecycle_events(interaction_id, scheduled, status, completed, device_id, timestamp)


def _audit_events(audit: dict[str, Any], device_id: str, timestamp: str) -> list[Event]:
    audit_id = audit["id"]
    status = "calendarEvent.status.completed" if audit.get("occurredAt") else "calendarEvent.status.scheduled"

    scheduled: dict[str, Any] = {
        "id": audit_id,
        "type": "calendarEvent.type.audit",
        "scheduledFor": audit["scheduledFor"],
        "accountId": audit["accountId"],
    }
    if audit.get("notes"):
        scheduled["description"] = audit["notes"]
    if is_int(audit.get("durationMinutes")) and audit["durationMinutes"] > 0:
        scheduled["durationMinutes"] = audit["durationMinutes"]
    if audit.get("createdAt"):
        scheduled["createdAt"] = audit["createdAt"]

    completed: dict[str, Any] = {
        "id": audit_id,
        "occurredAt": audit.get("occurredAt"),
        "accountId": audit["accountId"],
    }
    for key in ("score", "floorsVisited"):
        if audit.get(key) is not None:
            completed[key] = audit[key]
    return _lifecycle_events(audit_id, scheduled, status, completed, device_id, timestamp)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def plan_calendar_event_migration(
    doc: dict[str, Any],
    device_id: str,
    *,
    timestamp: str | None = None,
) -> MigrationReport:
    """
    Events that move interactions, audits and interaction links onto
    calendar events. The document is only read.

    Every planned event carries the same timestamp (the migration time);
    the original creation time travels in the payload as createdAt.
    """
    ts = timestamp or now_iso()
    report = MigrationReport(migration=CALENDAR_EVENT_MIGRATION)
    calendar_ids = set(doc["calendarEvents"])

    for interaction_id in sorted(doc["interactions"]):
        if interaction_id in calendar_ids:
            continue
        report.events.extend(
            _interaction_events(doc["interactions"][interaction_id], report, device_id, ts)
        )
        report.interaction_ids.append(interaction_id)
        calendar_ids.add(interaction_id)

    for audit_id in sorted(doc["audits"]):
        if audit_id in calendar_ids:
            continue
        report.events.extend(_audit_events(doc["audits"][audit_id], device_id, ts))
        report.audit_ids.append(audit_id)
        calendar_ids.add(audit_id)

    links = doc["relations"]["entityLinks"]
    for link_id in sorted(links):
        link = links[link_id]
        if link.get("linkType") != "interaction":
            continue
        source_id = link.get("interactionId")
        entity_type = link.get("entityType")
        entity_id = link.get("entityId")
        if source_id not in calendar_ids:
            report.warnings.append(f"Link {link_id} references missing interaction {source_id}")
            continue
        if entity_type not in LINKABLE_ENTITY_TYPES or entity_id not in doc[ENTITY_TYPE_COLLECTIONS[entity_type]]:
            report.warnings.append(f"Link {link_id} points at missing {entity_type} {entity_id}")
            continue
        new_link_id = f"migration:{link_id}"
        if new_link_id in links or find_link(doc, "calendarEvent", source_id, entity_type, entity_id):
            continue
        report.events.append(
            build_event(
                "calendarEvent.linked",
                source_id,
                {
                    "linkId": new_link_id,
                    "calendarEventId": source_id,
                    "entityType": entity_type,
                    "entityId": entity_id,
                },
                device_id,
                timestamp=ts,
                event_id=f"migration:link:{link_id}",
            )
        )
        report.link_ids.append(link_id)

    return report


def validate_calendar_event_migration(doc: dict[str, Any]) -> list[str]:
    """Problems left after migrating; an empty list means complete."""
    issues: list[str] = []
    calendar = doc["calendarEvents"]

    missing = sorted(i for i in doc["interactions"] if i not in calendar)
    if missing:
        issues.append(f"{len(missing)} interactions without calendar events: {', '.join(missing)}")
    missing = sorted(a for a in doc["audits"] if a not in calendar)
    if missing:
        issues.append(f"{len(missing)} audits without calendar events: {', '.join(missing)}")

    unlinked = 0
    for link in doc["relations"]["entityLinks"].values():
        if link.get("linkType") != "interaction" or link.get("interactionId") not in calendar:
            continue
        entity_type = link.get("entityType")
        if entity_type not in LINKABLE_ENTITY_TYPES:
            continue
        if link.get("entityId") not in doc[ENTITY_TYPE_COLLECTIONS[entity_type]]:
            continue
        if find_link(doc, "calendarEvent", link["interactionId"], entity_type, link["entityId"]) is None:
            unlinked += 1
    if unlinked:
        issues.append(f"{unlinked} interaction links without calendar event links")
    return issues


# ---------------------------------------------------------------------------
# Running
# ---------------------------------------------------------------------------


async def run_calendar_event_migration(crm: CrmStore, *, timestamp: str | None = None) -> MigrationReport:
    """
    Plan against the live document, dispatch the batch through `crm` and
    flush it to the log.

    Raises MigrationError when the batch is rejected or the migrated
    document still has interactions, audits or links without calendar
    events.
    """
    report = plan_calendar_event_migration(crm.doc, crm.session.device_id, timestamp=timestamp)
    for warning in report.warnings:
        logger.warning("%s: %s", report.migration, warning)
    if not report.changed:
        logger.info("%s: nothing to migrate", report.migration)
        return report

    result = crm.dispatch(report.events)
    if not result.success:
        raise MigrationError(f"{report.migration} rejected ({result.error_type}): {result.error}")
    await crm.flush()

    issues = validate_calendar_event_migration(crm.doc)
    if issues:
        raise MigrationError(f"{report.migration} incomplete: {'; '.join(issues)}")
    logger.info(
        "%s: %d interactions, %d audits, %d links migrated",
        report.migration, len(report.interaction_ids), len(report.audit_ids), len(report.link_ids),
    )
    return report
