"""
Orbit Kernel — the event-sourced document store.

Components:
  events       — event construction, id generation, canonical ordering
  reducer      — (document, event) → document  (pure, deterministic)
  registry     — event type → reducer table
  selectors    — read-only projections over a document
  persistence  — event log + snapshots, load = snapshot ⊕ replay
  session      — CrmStore: synchronous dispatch, async durable writes
  backup       — export / import of the event log
  migrations   — shape migrations expressed as appended events
"""

from orbit.kernel.document import empty_document, normalize_document
from orbit.kernel.errors import (
    DuplicateEntityError,
    EntityNotFoundError,
    InvalidPayloadError,
    InvariantViolation,
    MigrationError,
    OrbitError,
    PersistenceIOError,
    ReplayError,
    UnregisteredEventType,
)
from orbit.kernel.events import build_event, merge_event_logs, sort_events
from orbit.kernel.migrations import run_calendar_event_migration
from orbit.kernel.persistence import EventStore, MemoryStore, load_persisted_state
from orbit.kernel.reducer import apply_event, apply_events, replay
from orbit.kernel.session import CrmStore, SessionContext
from orbit.kernel.types import DispatchResult, Event

__all__ = [
    "Event",
    "DispatchResult",
    "build_event",
    "sort_events",
    "merge_event_logs",
    "empty_document",
    "normalize_document",
    "apply_event",
    "apply_events",
    "replay",
    "EventStore",
    "MemoryStore",
    "load_persisted_state",
    "CrmStore",
    "SessionContext",
    "run_calendar_event_migration",
    "OrbitError",
    "UnregisteredEventType",
    "DuplicateEntityError",
    "EntityNotFoundError",
    "InvariantViolation",
    "InvalidPayloadError",
    "ReplayError",
    "PersistenceIOError",
    "MigrationError",
]
