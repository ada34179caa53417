"""
Contact reducers.

Contacts carry two method lists (`emails`, `phones`). Each method is
{value, label, status}. Legacy single-field names are split into
firstName / lastName at creation time.
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
    resolve_entity_id,
    stamp_created,
    stamp_updated,
)
from orbit.kernel.types import (
    CONTACT_METHOD_LABELS,
    CONTACT_METHOD_STATUSES,
    CONTACT_METHOD_TYPES,
    CONTACT_TYPES,
    Event,
)

logger = logging.getLogger(__name__)

_UPDATABLE = ("name", "firstName", "lastName", "title", "type", "methods")


def split_legacy_name(name: str) -> tuple[str, str]:
    """
    "Ada Lovelace" -> ("Ada", "Lovelace"); "Cher" -> ("", "Cher").
    Everything after the first space is the last name.
    """
    name = name.strip()
    if " " not in name:
        return "", name
    first, rest = name.split(" ", 1)
    return first, rest.strip()


def _check_method(method: Any) -> dict[str, Any]:
    if not isinstance(method, dict) or not isinstance(method.get("value"), str):
        raise InvalidPayloadError("Contact method must be an object with a string value.")
    check_enum(method.get("label"), CONTACT_METHOD_LABELS, "contact method label")
    check_enum(method.get("status"), CONTACT_METHOD_STATUSES, "contact method status")
    return {
        "value": method["value"],
        "label": method.get("label", "contact.method.label.work"),
        "status": method.get("status", "contact.method.status.active"),
    }


def _check_methods(methods: Any) -> dict[str, list[dict[str, Any]]]:
    if methods is None:
        return {"emails": [], "phones": []}
    if not isinstance(methods, dict):
        raise InvalidPayloadError("Contact methods must be an object.")
    checked: dict[str, list[dict[str, Any]]] = {}
    for method_type in ("emails", "phones"):
        entries = methods.get(method_type, [])
        if not isinstance(entries, list):
            raise InvalidPayloadError(f"Contact methods.{method_type} must be a list.")
        checked[method_type] = [_check_method(m) for m in entries]
    return checked


def _method_type(payload: dict[str, Any]) -> str:
    method_type = payload.get("methodType")
    if not isinstance(method_type, str) or method_type not in CONTACT_METHOD_TYPES:
        raise InvalidPayloadError(f"Invalid contact method type: {method_type}")
    return method_type


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _handle_created(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    contact_id = resolve_entity_id(event, payload)
    require_absent(doc, "contacts", "Contact", contact_id)
    contact_type = check_enum(
        payload.get("type", "contact.type.external"), CONTACT_TYPES, "contact type"
    )

    legacy = payload.get("name").strip() if isinstance(payload.get("name"), str) else ""
    legacy_first, legacy_last = split_legacy_name(legacy) if legacy else ("", "")
    first = payload.get("firstName", legacy_first) or ""
    last = payload.get("lastName", legacy_last) or ""
    name = legacy or f"{first} {last}".strip()

    contact: dict[str, Any] = {
        "id": contact_id,
        "type": contact_type,
        "firstName": first,
        "lastName": last,
        "methods": _check_methods(payload.get("methods")),
    }
    if name:
        contact["name"] = name
    copy_present(contact, payload, ("title",))
    doc["contacts"][contact_id] = stamp_created(contact, event)
    logger.debug("contact created: %s", contact_id)
    return doc


def _handle_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    contact = require_entity(doc, "contacts", "Contact", resolve_entity_id(event, payload))
    check_enum(payload.get("type"), CONTACT_TYPES, "contact type")
    updates = dict(payload)
    if "methods" in updates:
        updates["methods"] = _check_methods(updates["methods"])
    copy_present(contact, updates, _UPDATABLE)
    stamp_updated(contact, event)
    return doc


def _handle_method_added(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    contact = require_entity(doc, "contacts", "Contact", resolve_entity_id(event, payload))
    method_type = _method_type(payload)
    method = _check_method(payload.get("method"))
    contact["methods"].setdefault(method_type, []).append(method)
    stamp_updated(contact, event)
    return doc


def _handle_method_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    contact = require_entity(doc, "contacts", "Contact", resolve_entity_id(event, payload))
    method_type = _method_type(payload)
    methods = contact["methods"].setdefault(method_type, [])
    index = payload.get("index")
    if not is_int(index) or index < 0 or index >= len(methods):
        raise InvalidPayloadError(f"Contact method index out of bounds: {index}")
    methods[index] = _check_method(payload.get("method"))
    stamp_updated(contact, event)
    return doc


def _handle_deleted(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    contact_id = resolve_entity_id(event, payload)
    require_entity(doc, "contacts", "Contact", contact_id)
    del doc["contacts"][contact_id]
    logger.debug("contact deleted: %s", contact_id)
    return doc


HANDLERS: dict[str, Any] = {
    "contact.created": _handle_created,
    "contact.updated": _handle_updated,
    "contact.method.added": _handle_method_added,
    "contact.method.updated": _handle_method_updated,
    "contact.deleted": _handle_deleted,
}
