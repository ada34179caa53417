"""
Settings and device reducers.

Settings are device-local preferences. Each update merges the given keys
into one section after validating them.
"""

from __future__ import annotations

from typing import Any

from orbit.kernel.errors import InvalidPayloadError
from orbit.kernel.reducers.common import payload_of
from orbit.kernel.types import Event

SETTINGS_SCHEMA: dict[str, dict[str, set[str]]] = {
    "security": {
        "biometricAuth": {"enabled", "disabled"},
        "blurTimeout": {"15", "30", "60", "never"},
        "authFrequency": {"each", "session"},
    },
    "calendar": {
        "palette": {"orbit", "meadow", "ember"},
    },
    "appearance": {
        "palette": {"orbit", "meadow", "ember"},
        "mode": {"system", "light", "dark"},
    },
}


def _update_section(section: str):
    allowed = SETTINGS_SCHEMA[section]

    def handler(doc: dict[str, Any], event: Event) -> dict[str, Any]:
        payload = payload_of(event)
        updates = {k: v for k, v in payload.items() if k != "id"}
        for key, value in updates.items():
            if key not in allowed:
                raise InvalidPayloadError(f"Unknown {section} setting: {key}")
            if not isinstance(value, str) or value not in allowed[key]:
                raise InvalidPayloadError(f"Invalid {section}.{key} value: {value}")
        doc["settings"].setdefault(section, {}).update(updates)
        return doc

    handler.__name__ = f"_handle_{section}_updated"
    return handler


def _handle_device_registered(doc: dict[str, Any], event: Event) -> dict[str, Any]:
    # Provenance only; the event log records which devices wrote history.
    return doc


HANDLERS: dict[str, Any] = {
    "settings.security.updated": _update_section("security"),
    "settings.calendar.updated": _update_section("calendar"),
    "settings.appearance.updated": _update_section("appearance"),
    "device.registered": _handle_device_registered,
}
