"""
Orbit Kernel — Reducer Registry

Event type -> pure reducer. Built once at import time from the per-entity
HANDLERS tables. An event type without a reducer is a hard error: dropping
it would silently desynchronize devices.
"""

from __future__ import annotations

from typing import Any, Callable

from orbit.kernel.errors import UnregisteredEventType
from orbit.kernel.events import EVENT_TYPES
from orbit.kernel.reducers import (
    account,
    account_contact,
    audit,
    calendar_event,
    code,
    contact,
    interaction,
    note,
    organization,
    settings,
)
from orbit.kernel.types import Event

Reducer = Callable[[dict[str, Any], Event], dict[str, Any]]

_MODULES = (
    organization,
    account,
    audit,
    contact,
    account_contact,
    note,
    interaction,
    code,
    calendar_event,
    settings,
)


def _build() -> dict[str, Reducer]:
    table: dict[str, Reducer] = {}
    for module in _MODULES:
        for event_type, handler in module.HANDLERS.items():
            if event_type in table:
                raise RuntimeError(f"Reducer registered twice: {event_type}")
            table[event_type] = handler
    missing = set(EVENT_TYPES) - set(table)
    extra = set(table) - set(EVENT_TYPES)
    if missing or extra:
        raise RuntimeError(
            f"Reducer table out of sync with EVENT_TYPES (missing={sorted(missing)}, extra={sorted(extra)})"
        )
    return table


REDUCERS: dict[str, Reducer] = _build()


def get_reducer(event_type: str) -> Reducer:
    handler = REDUCERS.get(event_type)
    if handler is None:
        raise UnregisteredEventType(event_type)
    return handler


def is_registered(event_type: str) -> bool:
    return event_type in REDUCERS
