"""
Orbit Kernel — Document Schema

The document is a plain dict-of-dicts, one map per entity collection keyed
by id, plus device-local settings and a `relations` sub-document:

    {
      "organizations": {}, "accounts": {}, "audits": {}, "contacts": {},
      "notes": {}, "interactions": {}, "codes": {}, "calendarEvents": {},
      "settings": {"security": {...}, "calendar": {...}, "appearance": {...}},
      "relations": {"accountContacts": {}, "entityLinks": {}},
    }

Reducers never mutate a document they were handed; every applied event
produces a new one.
"""

from __future__ import annotations

import copy
import json
from typing import Any

from orbit.kernel.types import ENTITY_COLLECTIONS

DEFAULT_SETTINGS: dict[str, Any] = {
    "security": {
        "biometricAuth": "enabled",
        "blurTimeout": "30",
        "authFrequency": "each",
    },
    "calendar": {
        "palette": "orbit",
    },
    "appearance": {
        "palette": "orbit",
        "mode": "system",
    },
}

RELATION_TABLES: tuple[str, ...] = ("accountContacts", "entityLinks")


def empty_document() -> dict[str, Any]:
    """The document before any event has been applied."""
    doc: dict[str, Any] = {name: {} for name in ENTITY_COLLECTIONS}
    doc["settings"] = copy.deepcopy(DEFAULT_SETTINGS)
    doc["relations"] = {name: {} for name in RELATION_TABLES}
    return doc


def normalize_document(raw: dict[str, Any]) -> dict[str, Any]:
    """
    Bring a document loaded from an older snapshot up to the current shape.

    Missing collections, relation tables and settings sections get their
    empty defaults, legacy `noteLinks` fold into `entityLinks`, and codes
    without an `isEncrypted` flag are marked unencrypted. Returns a new dict.
    """
    doc = copy.deepcopy(raw)

    for name in ENTITY_COLLECTIONS:
        if not isinstance(doc.get(name), dict):
            doc[name] = {}

    settings = doc.get("settings")
    if not isinstance(settings, dict):
        settings = {}
    for section, defaults in DEFAULT_SETTINGS.items():
        current = settings.get(section)
        merged = dict(defaults)
        if isinstance(current, dict):
            merged.update(current)
        settings[section] = merged
    doc["settings"] = settings

    relations = doc.get("relations")
    if not isinstance(relations, dict):
        relations = {}
    for name in RELATION_TABLES:
        if not isinstance(relations.get(name), dict):
            relations[name] = {}

    legacy = relations.pop("noteLinks", None)
    if isinstance(legacy, dict):
        for link_id, link in legacy.items():
            if link_id in relations["entityLinks"]:
                continue
            relations["entityLinks"][link_id] = {
                "linkType": "note",
                "noteId": link.get("noteId"),
                "entityType": link.get("entityType"),
                "entityId": link.get("entityId"),
            }
    doc["relations"] = relations

    for code in doc["codes"].values():
        if isinstance(code, dict) and "isEncrypted" not in code:
            code["isEncrypted"] = False

    return doc


def document_json(doc: dict[str, Any]) -> str:
    """Canonical JSON (sorted keys). Structural equality == string equality."""
    return json.dumps(doc, sort_keys=True, ensure_ascii=True, separators=(",", ":"))


def documents_equal(a: dict[str, Any], b: dict[str, Any]) -> bool:
    return document_json(a) == document_json(b)
