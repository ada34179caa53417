"""
Account reducers.

An account belongs to exactly one organization, which must exist when the
account is created or moved. Accounts may carry a floor range
(minFloor..maxFloor minus excludedFloors) that audits are checked against.
"""

from __future__ import annotations

import logging
from typing import Any

from orbit.kernel.errors import InvalidPayloadError
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
from orbit.kernel.types import ACCOUNT_STATUSES, Event

logger = logging.getLogger(__name__)

_OPTIONAL = (
    "addresses",
    "website",
    "socialMedia",
    "metadata",
    "minFloor",
    "maxFloor",
    "excludedFloors",
)
_UPDATABLE = ("name", "status", "organizationId") + _OPTIONAL


# ---------------------------------------------------------------------------
# Floor range
# ---------------------------------------------------------------------------


def validate_floor_range(account: dict[str, Any]) -> None:
    min_floor = account.get("minFloor")
    max_floor = account.get("maxFloor")
    if min_floor is None and max_floor is None:
        return
    if not is_int(min_floor) or not is_int(max_floor):
        raise InvalidPayloadError("Account floor range must use integer values.")
    if min_floor > max_floor:
        raise InvalidPayloadError("Account floor range is invalid: minFloor > maxFloor.")
    excluded = account.get("excludedFloors")
    if excluded is None:
        return
    if not isinstance(excluded, list) or not all(is_int(f) for f in excluded):
        raise InvalidPayloadError("Account excludedFloors must be a list of integers.")


def allowed_floors(account: dict[str, Any]) -> set[int] | None:
    """Floors an audit may visit, or None when no range is configured."""
    min_floor = account.get("minFloor")
    max_floor = account.get("maxFloor")
    if min_floor is None or max_floor is None:
        return None
    validate_floor_range(account)
    excluded = set(account.get("excludedFloors") or [])
    return {f for f in range(min_floor, max_floor + 1) if f not in excluded}


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _handle_created(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    account_id = resolve_entity_id(event, payload)
    require_absent(doc, "accounts", "Account", account_id)
    org_id = require_string(payload, "organizationId", event.type)
    require_entity(doc, "organizations", "Organization", org_id)

    account: dict[str, Any] = {
        "id": account_id,
        "organizationId": org_id,
        "name": require_string(payload, "name", event.type),
        "status": check_enum(
            payload.get("status", "account.status.active"),
            ACCOUNT_STATUSES,
            "account status",
        ),
    }
    copy_present(account, payload, _OPTIONAL)
    validate_floor_range(account)
    doc["accounts"][account_id] = stamp_created(account, event)
    logger.debug("account created: %s (organization %s)", account_id, org_id)
    return doc


def _handle_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    account_id = resolve_entity_id(event, payload)
    account = require_entity(doc, "accounts", "Account", account_id)
    if payload.get("organizationId") is not None:
        require_entity(doc, "organizations", "Organization", payload["organizationId"])
    check_enum(payload.get("status"), ACCOUNT_STATUSES, "account status")

    copy_present(account, payload, _UPDATABLE)
    validate_floor_range(account)
    stamp_updated(account, event)
    return doc


def _handle_status_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    account_id = resolve_entity_id(event, payload)
    account = require_entity(doc, "accounts", "Account", account_id)
    account["status"] = check_enum(
        require_string(payload, "status", event.type),
        ACCOUNT_STATUSES,
        "account status",
    )
    stamp_updated(account, event)
    return doc


def _handle_deleted(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    # Relations referencing the account are removed only by their own unlink events.
    payload = payload_of(event)
    account_id = resolve_entity_id(event, payload)
    require_entity(doc, "accounts", "Account", account_id)
    del doc["accounts"][account_id]
    logger.debug("account deleted: %s", account_id)
    return doc


HANDLERS: dict[str, Any] = {
    "account.created": _handle_created,
    "account.updated": _handle_updated,
    "account.status.updated": _handle_status_updated,
    "account.deleted": _handle_deleted,
}
