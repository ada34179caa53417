"""
Orbit Kernel — Errors

Reducers raise these synchronously; apply_events lets them propagate
untouched. CrmStore.dispatch is the only place that turns them into a
DispatchResult.
"""

from __future__ import annotations


class OrbitError(Exception):
    """Base class for every kernel error."""


class UnregisteredEventType(OrbitError):
    """No reducer is registered for the event type (event from a newer client)."""

    def __init__(self, event_type: str):
        super().__init__(f"Unregistered event type: {event_type}")
        self.event_type = event_type


class DuplicateEntityError(OrbitError):
    """A creation event targets an id that already exists."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} already exists: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class EntityNotFoundError(OrbitError):
    """An update or relation event targets an id that does not exist."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class InvariantViolation(OrbitError):
    """Applying the event would break a document invariant."""


class InvalidPayloadError(InvariantViolation):
    """The payload is missing required fields or carries invalid values."""


class ReplayError(OrbitError):
    """A reducer failed while rebuilding state from the log."""

    def __init__(self, event_id: str, event_type: str, cause: Exception):
        super().__init__(
            f"Replay failed at event {event_id} ({event_type}): {cause}"
        )
        self.event_id = event_id
        self.event_type = event_type


class PersistenceIOError(OrbitError):
    """Durable read or write against the event store failed."""


class BackupFormatError(OrbitError):
    """A backup file is malformed, too large, or from an unsupported version."""


class MigrationError(OrbitError):
    """A shape migration was rejected or left the document incomplete."""
