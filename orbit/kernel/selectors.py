"""
Orbit Kernel — Selectors

Read-only projections over a document. Never mutate the document and
never crash on dangling relations: a link or relation whose endpoint is
missing (deleted entity, partially migrated snapshot) is filtered out.

Results are sorted by id so repeated calls return identical lists.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from orbit.kernel.types import ENTITY_TYPE_COLLECTIONS, LINK_SOURCE_KEYS
from orbit.models.entities import DECODERS, decode, decode_contact


@dataclass(frozen=True)
class LinkedEntityInfo:
    """A resolved link target: what it is and what to call it."""

    link_id: str
    entity_type: str
    entity_id: str
    name: str


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _entity(doc: dict[str, Any], entity_type: str, entity_id: Any) -> dict[str, Any] | None:
    collection = ENTITY_TYPE_COLLECTIONS.get(entity_type)
    if collection is None or not isinstance(entity_id, str):
        return None
    return doc.get(collection, {}).get(entity_id)


def _links(doc: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return doc.get("relations", {}).get("entityLinks", {})


def _account_contacts(doc: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return doc.get("relations", {}).get("accountContacts", {})


# ---------------------------------------------------------------------------
# Display names
# ---------------------------------------------------------------------------


def contact_display_name(contact: dict[str, Any] | None) -> str:
    decoded = decode_contact(contact)
    if decoded is None:
        return "Unnamed Contact"
    return decoded.display_name


def entity_display_name(doc: dict[str, Any], entity_type: str, entity_id: str) -> str | None:
    """Human label for an entity, or None when it does not exist."""
    entity = _entity(doc, entity_type, entity_id)
    if entity is None:
        return None
    if entity_type == "contact":
        return contact_display_name(entity)
    model = DECODERS.get(entity_type)
    decoded = decode(model, entity) if model is not None else None
    for attr in ("name", "title", "label", "summary"):
        value = getattr(decoded, attr, None) or entity.get(attr)
        if value:
            return value
    return entity_id


# ---------------------------------------------------------------------------
# Account <-> contact
# ---------------------------------------------------------------------------


def get_contacts_for_account(doc: dict[str, Any], account_id: str) -> list[str]:
    """Ids of existing contacts related to the account (any role)."""
    ids = {
        rel["contactId"]
        for rel in _account_contacts(doc).values()
        if rel.get("accountId") == account_id and _entity(doc, "contact", rel.get("contactId"))
    }
    return sorted(ids)


def get_accounts_for_contact(doc: dict[str, Any], contact_id: str) -> list[str]:
    ids = {
        rel["accountId"]
        for rel in _account_contacts(doc).values()
        if rel.get("contactId") == contact_id and _entity(doc, "account", rel.get("accountId"))
    }
    return sorted(ids)


def get_primary_contacts(doc: dict[str, Any], account_id: str, role: str | None = None) -> list[str]:
    """Contact ids marked primary for the account (optionally for one role)."""
    if _entity(doc, "account", account_id) is None:
        return []
    ids = {
        rel["contactId"]
        for rel in _account_contacts(doc).values()
        if rel.get("accountId") == account_id
        and rel.get("isPrimary")
        and (role is None or rel.get("role") == role)
        and _entity(doc, "contact", rel.get("contactId"))
    }
    return sorted(ids)


def get_account_for_relation(doc: dict[str, Any], relation_id: str) -> dict[str, Any] | None:
    """The account an accountContacts record points at, or None when dangling."""
    rel = _account_contacts(doc).get(relation_id)
    if rel is None:
        return None
    return _entity(doc, "account", rel.get("accountId"))


# ---------------------------------------------------------------------------
# Entity links
# ---------------------------------------------------------------------------


def get_linked_entities(doc: dict[str, Any], entity_type: str, entity_id: str) -> list[dict[str, Any]]:
    """
    Link records (with their id as `linkId`) that point at the entity and
    whose source note / interaction / calendar event still exists.
    """
    result = []
    for link_id, link in sorted(_links(doc).items()):
        if link.get("entityType") != entity_type or link.get("entityId") != entity_id:
            continue
        link_type = link.get("linkType")
        source_key = LINK_SOURCE_KEYS.get(link_type)
        if source_key is None or _entity(doc, link_type, link.get(source_key)) is None:
            continue
        result.append({"linkId": link_id, **link})
    return result


def _sources_for(doc: dict[str, Any], link_type: str, entity_type: str, entity_id: str) -> list[dict[str, Any]]:
    if _entity(doc, entity_type, entity_id) is None:
        return []
    source_key = LINK_SOURCE_KEYS[link_type]
    seen: set[str] = set()
    result = []
    for link in get_linked_entities(doc, entity_type, entity_id):
        if link["linkType"] != link_type or link[source_key] in seen:
            continue
        seen.add(link[source_key])
        result.append(_entity(doc, link_type, link[source_key]))
    return result


def get_notes_for_entity(doc: dict[str, Any], entity_type: str, entity_id: str) -> list[dict[str, Any]]:
    return _sources_for(doc, "note", entity_type, entity_id)


def get_interactions_for_entity(doc: dict[str, Any], entity_type: str, entity_id: str) -> list[dict[str, Any]]:
    return _sources_for(doc, "interaction", entity_type, entity_id)


def get_calendar_events_for_entity(doc: dict[str, Any], entity_type: str, entity_id: str) -> list[dict[str, Any]]:
    return _sources_for(doc, "calendarEvent", entity_type, entity_id)


def _targets_for(doc: dict[str, Any], link_type: str, source_id: str) -> list[LinkedEntityInfo]:
    source_key = LINK_SOURCE_KEYS[link_type]
    result = []
    for link_id, link in sorted(_links(doc).items()):
        if link.get("linkType") != link_type or link.get(source_key) != source_id:
            continue
        name = entity_display_name(doc, link.get("entityType", ""), link.get("entityId"))
        if name is None:
            continue
        result.append(
            LinkedEntityInfo(
                link_id=link_id,
                entity_type=link["entityType"],
                entity_id=link["entityId"],
                name=name,
            )
        )
    return result


def get_entities_for_note(doc: dict[str, Any], note_id: str) -> list[LinkedEntityInfo]:
    return _targets_for(doc, "note", note_id)


def get_entities_for_interaction(doc: dict[str, Any], interaction_id: str) -> list[LinkedEntityInfo]:
    return _targets_for(doc, "interaction", interaction_id)


def get_entities_for_calendar_event(doc: dict[str, Any], calendar_event_id: str) -> list[LinkedEntityInfo]:
    return _targets_for(doc, "calendarEvent", calendar_event_id)


# ---------------------------------------------------------------------------
# Ownership (id references on the entity itself)
# ---------------------------------------------------------------------------


def get_accounts_for_organization(doc: dict[str, Any], organization_id: str) -> list[dict[str, Any]]:
    return [
        account
        for _, account in sorted(doc.get("accounts", {}).items())
        if account.get("organizationId") == organization_id
    ]


def get_codes_for_account(doc: dict[str, Any], account_id: str) -> list[dict[str, Any]]:
    return [
        code
        for _, code in sorted(doc.get("codes", {}).items())
        if code.get("accountId") == account_id
    ]


def get_audits_for_account(doc: dict[str, Any], account_id: str) -> list[dict[str, Any]]:
    audits = [a for a in doc.get("audits", {}).values() if a.get("accountId") == account_id]
    return sorted(audits, key=lambda a: (a.get("scheduledFor", ""), a["id"]))
