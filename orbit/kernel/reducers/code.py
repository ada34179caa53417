"""Access code reducers (door, gate, lockbox and alarm codes for an account)."""

from __future__ import annotations

from typing import Any

from orbit.kernel.errors import InvalidPayloadError
from orbit.kernel.reducers.common import (
    check_enum,
    copy_present,
    optional_bool,
    payload_of,
    require_absent,
    require_entity,
    require_string,
    resolve_entity_id,
    stamp_created,
    stamp_updated,
)
from orbit.kernel.types import CODE_TYPES, Event

_UPDATABLE = ("accountId", "label", "codeValue", "type", "notes", "isEncrypted")


def _handle_created(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    code_id = resolve_entity_id(event, payload)
    require_absent(doc, "codes", "Code", code_id)
    account_id = require_string(payload, "accountId", event.type)
    require_entity(doc, "accounts", "Account", account_id)

    code: dict[str, Any] = {
        "id": code_id,
        "accountId": account_id,
        "label": require_string(payload, "label", event.type),
        "codeValue": require_string(payload, "codeValue", event.type),
        "type": check_enum(payload.get("type", "code.type.other"), CODE_TYPES, "code type"),
        "isEncrypted": optional_bool(payload, "isEncrypted", event.type),
    }
    copy_present(code, payload, ("notes",))
    stamp_created(code, event)
    # imported codes keep their original creation time
    if isinstance(payload.get("createdAt"), str) and payload["createdAt"]:
        code["createdAt"] = payload["createdAt"]
    doc["codes"][code_id] = code
    return doc


def _handle_updated(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    code = require_entity(doc, "codes", "Code", resolve_entity_id(event, payload))
    if payload.get("accountId") is not None:
        require_entity(doc, "accounts", "Account", payload["accountId"])
    check_enum(payload.get("type"), CODE_TYPES, "code type")
    if "isEncrypted" in payload:
        payload["isEncrypted"] = optional_bool(payload, "isEncrypted", event.type)
    copy_present(code, payload, _UPDATABLE)
    stamp_updated(code, event)
    return doc


def _handle_encrypted(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    """Replace the plaintext value with its ciphertext. Encryption happens upstream."""
    payload = payload_of(event)
    code = require_entity(doc, "codes", "Code", resolve_entity_id(event, payload))
    value = payload.get("codeValue")
    if not isinstance(value, str):
        raise InvalidPayloadError("Encrypted code value must be a string.")
    code["codeValue"] = value
    code["isEncrypted"] = True
    stamp_updated(code, event)
    return doc


def _handle_deleted(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    payload = payload_of(event)
    code_id = resolve_entity_id(event, payload)
    require_entity(doc, "codes", "Code", code_id)
    del doc["codes"][code_id]
    return doc


HANDLERS: dict[str, Any] = {
    "code.created": _handle_created,
    "code.updated": _handle_updated,
    "code.encrypted": _handle_encrypted,
    "code.deleted": _handle_deleted,
}
