"""
Account <-> contact relation reducers.

Relation records live in relations.accountContacts keyed by their own id:

    {"accountId", "contactId", "role", "isPrimary"}

Invariant: at most one record per (accountId, role) has isPrimary set.
Promoting a record demotes the current primary of the same scope first.
"""

from __future__ import annotations

import logging
from typing import Any

from orbit.kernel.errors import DuplicateEntityError, EntityNotFoundError, InvariantViolation
from orbit.kernel.reducers.common import (
    check_enum,
    optional_bool,
    payload_of,
    require_entity,
    require_string,
    resolve_entity_id,
)
from orbit.kernel.types import ACCOUNT_CONTACT_ROLES, Event

logger = logging.getLogger(__name__)


def _relations(doc: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return doc["relations"]["accountContacts"]


def _find(doc: dict[str, Any], account_id: str, contact_id: str, role: str) -> str | None:
    for rel_id, rel in _relations(doc).items():
        if rel["accountId"] == account_id and rel["contactId"] == contact_id and rel["role"] == role:
            return rel_id
    return None


def _demote_primaries(doc: dict[str, Any], account_id: str, role: str, keep: str | None) -> None:
    for rel_id, rel in _relations(doc).items():
        if rel_id == keep:
            continue
        if rel["accountId"] == account_id and rel["role"] == role and rel.get("isPrimary"):
            rel["isPrimary"] = False
            logger.debug("demoted primary %s for %s/%s", rel_id, account_id, role)


def _assert_single_primary(doc: dict[str, Any], account_id: str, role: str) -> None:
    primaries = [
        rel_id
        for rel_id, rel in _relations(doc).items()
        if rel["accountId"] == account_id and rel["role"] == role and rel.get("isPrimary")
    ]
    if len(primaries) > 1:
        raise InvariantViolation(
            f"Multiple primary contacts for account {account_id} role {role}: {sorted(primaries)}"
        )


def _resolve_target(doc: dict[str, Any], event: Event, payload: dict[str, Any]) -> str:
    """Relation id from payload.id / entityId, else lookup by (account, contact, role)."""
    if payload.get("id") is not None or event.entity_id is not None:
        rel_id = resolve_entity_id(event, payload)
    else:
        account_id = require_string(payload, "accountId", event.type)
        contact_id = require_string(payload, "contactId", event.type)
        role = require_string(payload, "role", event.type)
        rel_id = _find(doc, account_id, contact_id, role) or ""
        if not rel_id:
            raise EntityNotFoundError("AccountContact", f"{account_id}/{contact_id}/{role}")
    if rel_id not in _relations(doc):
        raise EntityNotFoundError("AccountContact", rel_id)
    return rel_id


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _handle_linked(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    rel_id = resolve_entity_id(event, payload)
    account_id = require_string(payload, "accountId", event.type)
    contact_id = require_string(payload, "contactId", event.type)
    role = check_enum(
        require_string(payload, "role", event.type), ACCOUNT_CONTACT_ROLES, "account contact role"
    )
    require_entity(doc, "accounts", "Account", account_id)
    require_entity(doc, "contacts", "Contact", contact_id)

    if rel_id in _relations(doc):
        raise DuplicateEntityError("AccountContact", rel_id)
    existing = _find(doc, account_id, contact_id, role)
    if existing is not None:
        raise DuplicateEntityError("AccountContact", f"{account_id}/{contact_id}/{role} ({existing})")

    is_primary = optional_bool(payload, "isPrimary", event.type)
    if is_primary:
        _demote_primaries(doc, account_id, role, keep=None)
    _relations(doc)[rel_id] = {
        "accountId": account_id,
        "contactId": contact_id,
        "role": role,
        "isPrimary": is_primary,
    }
    _assert_single_primary(doc, account_id, role)
    return doc


def _handle_set_primary(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    rel_id = _resolve_target(doc, event, payload)
    rel = _relations(doc)[rel_id]
    require_entity(doc, "accounts", "Account", rel["accountId"])
    require_entity(doc, "contacts", "Contact", rel["contactId"])

    _demote_primaries(doc, rel["accountId"], rel["role"], keep=rel_id)
    rel["isPrimary"] = True
    _assert_single_primary(doc, rel["accountId"], rel["role"])
    return doc


def _handle_unset_primary(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    rel_id = _resolve_target(doc, event, payload)
    _relations(doc)[rel_id]["isPrimary"] = False
    return doc


def _handle_unlinked(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    """
    Remove one relation by id, or every relation of an (account, contact) pair.
    Endpoints need not exist, so dangling relations can be cleaned up.
    """
    payload = payload_of(event)
    relations = _relations(doc)
    if payload.get("id") is not None or event.entity_id is not None:
        rel_id = resolve_entity_id(event, payload)
        if rel_id not in relations:
            raise EntityNotFoundError("AccountContact", rel_id)
        del relations[rel_id]
        return doc

    account_id = require_string(payload, "accountId", event.type)
    contact_id = require_string(payload, "contactId", event.type)
    matching = [
        rel_id
        for rel_id, rel in relations.items()
        if rel["accountId"] == account_id and rel["contactId"] == contact_id
    ]
    if not matching:
        raise EntityNotFoundError("AccountContact", f"{account_id}/{contact_id}")
    for rel_id in matching:
        del relations[rel_id]
    return doc


HANDLERS: dict[str, Any] = {
    "account.contact.linked": _handle_linked,
    "account.contact.unlinked": _handle_unlinked,
    "account.contact.setPrimary": _handle_set_primary,
    "account.contact.unsetPrimary": _handle_unset_primary,
}
