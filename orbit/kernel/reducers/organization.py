"""Organization reducers."""

from __future__ import annotations

import logging
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
from orbit.kernel.types import ORGANIZATION_STATUSES, Event

logger = logging.getLogger(__name__)

_UPDATABLE = ("name", "status", "metadata")


def _handle_created(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    org_id = resolve_entity_id(event, payload)
    require_absent(doc, "organizations", "Organization", org_id)
    name = require_string(payload, "name", event.type)
    status = check_enum(
        payload.get("status", "organization.status.active"),
        ORGANIZATION_STATUSES,
        "organization status",
    )

    org: dict[str, Any] = {"id": org_id, "name": name, "status": status}
    copy_present(org, payload, ("metadata",))
    doc["organizations"][org_id] = stamp_created(org, event)
    logger.debug("organization created: %s", org_id)
    return doc


def _handle_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    org_id = resolve_entity_id(event, payload)
    org = require_entity(doc, "organizations", "Organization", org_id)
    check_enum(payload.get("status"), ORGANIZATION_STATUSES, "organization status")
    copy_present(org, payload, _UPDATABLE)
    stamp_updated(org, event)
    return doc


def _handle_status_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    org_id = resolve_entity_id(event, payload)
    org = require_entity(doc, "organizations", "Organization", org_id)
    org["status"] = check_enum(
        require_string(payload, "status", event.type),
        ORGANIZATION_STATUSES,
        "organization status",
    )
    stamp_updated(org, event)
    return doc


def _handle_deleted(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    # Accounts referencing the organization are left in place.
    payload = payload_of(event)
    org_id = resolve_entity_id(event, payload)
    require_entity(doc, "organizations", "Organization", org_id)
    del doc["organizations"][org_id]
    logger.debug("organization deleted: %s", org_id)
    return doc


HANDLERS: dict[str, Any] = {
    "organization.created": _handle_created,
    "organization.updated": _handle_updated,
    "organization.status.updated": _handle_status_updated,
    "organization.deleted": _handle_deleted,
}
