"""
Typed read models for document entities.

The document stores plain dicts with camelCase keys. These pydantic models
give read paths (selectors, timeline, exports) a typed view, and the
decode_* helpers validate instead of blindly casting: an invalid or
missing record yields the caller's fallback.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class _Entity(BaseModel):
    """Shared config: camelCase aliases, unknown keys ignored (newer clients)."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    id: str
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")


class Organization(_Entity):
    name: str
    status: str = "organization.status.active"
    metadata: dict[str, Any] | None = None


class Account(_Entity):
    organization_id: str = Field(alias="organizationId")
    name: str
    status: str = "account.status.active"
    website: str | None = None
    addresses: dict[str, Any] | None = None
    social_media: dict[str, Any] | None = Field(default=None, alias="socialMedia")
    min_floor: int | None = Field(default=None, alias="minFloor")
    max_floor: int | None = Field(default=None, alias="maxFloor")
    excluded_floors: list[int] | None = Field(default=None, alias="excludedFloors")


class ContactMethod(BaseModel):
    model_config = {"extra": "ignore"}

    value: str
    label: str = "contact.method.label.work"
    status: str = "contact.method.status.active"


class ContactMethods(BaseModel):
    emails: list[ContactMethod] = Field(default_factory=list)
    phones: list[ContactMethod] = Field(default_factory=list)


class Contact(_Entity):
    type: str = "contact.type.external"
    name: str | None = None
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    title: str | None = None
    methods: ContactMethods = Field(default_factory=ContactMethods)

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or (self.name or "").strip() or "Unnamed Contact"


class Note(_Entity):
    title: str
    body: str = ""


class Interaction(_Entity):
    type: str
    occurred_at: str = Field(alias="occurredAt")
    summary: str = ""
    status: str = "interaction.status.completed"


class Audit(_Entity):
    account_id: str = Field(alias="accountId")
    scheduled_for: str = Field(alias="scheduledFor")
    occurred_at: str | None = Field(default=None, alias="occurredAt")
    notes: str | None = None
    score: float | None = None
    floors_visited: list[int] | None = Field(default=None, alias="floorsVisited")


class Code(_Entity):
    account_id: str = Field(alias="accountId")
    label: str
    code_value: str = Field(alias="codeValue")
    type: str = "code.type.other"
    is_encrypted: bool = Field(default=False, alias="isEncrypted")
    notes: str | None = None


class CalendarEvent(_Entity):
    type: str
    status: str = "calendarEvent.status.scheduled"
    scheduled_for: str = Field(alias="scheduledFor")
    occurred_at: str | None = Field(default=None, alias="occurredAt")
    summary: str | None = None
    description: str | None = None
    duration_minutes: int | None = Field(default=None, alias="durationMinutes")
    location: str | None = None
    recurrence_rule: dict[str, Any] | None = Field(default=None, alias="recurrenceRule")
    audit_data: dict[str, Any] | None = Field(default=None, alias="auditData")


class AccountContact(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    account_id: str = Field(alias="accountId")
    contact_id: str = Field(alias="contactId")
    role: str
    is_primary: bool = Field(default=False, alias="isPrimary")


class EntityLink(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    link_type: Literal["note", "interaction", "calendarEvent"] = Field(alias="linkType")
    entity_type: str = Field(alias="entityType")
    entity_id: str = Field(alias="entityId")
    note_id: str | None = Field(default=None, alias="noteId")
    interaction_id: str | None = Field(default=None, alias="interactionId")
    calendar_event_id: str | None = Field(default=None, alias="calendarEventId")

    @property
    def source_id(self) -> str | None:
        return self.note_id or self.interaction_id or self.calendar_event_id


# ---------------------------------------------------------------------------
# Fallible decoders
# ---------------------------------------------------------------------------

M = TypeVar("M", bound=BaseModel)


def decode(model: type[M], data: Any, fallback: M | None = None) -> M | None:
    """Validate `data` as `model`; on failure log and return `fallback`."""
    if data is None:
        return fallback
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning("decode %s failed: %s", model.__name__, e.errors()[:3])
        return fallback


def decode_organization(data: Any, fallback: Organization | None = None) -> Organization | None:
    return decode(Organization, data, fallback)


def decode_account(data: Any, fallback: Account | None = None) -> Account | None:
    return decode(Account, data, fallback)


def decode_contact(data: Any, fallback: Contact | None = None) -> Contact | None:
    return decode(Contact, data, fallback)


def decode_note(data: Any, fallback: Note | None = None) -> Note | None:
    return decode(Note, data, fallback)


def decode_interaction(data: Any, fallback: Interaction | None = None) -> Interaction | None:
    return decode(Interaction, data, fallback)


def decode_audit(data: Any, fallback: Audit | None = None) -> Audit | None:
    return decode(Audit, data, fallback)


def decode_code(data: Any, fallback: Code | None = None) -> Code | None:
    return decode(Code, data, fallback)


def decode_calendar_event(data: Any, fallback: CalendarEvent | None = None) -> CalendarEvent | None:
    return decode(CalendarEvent, data, fallback)


def decode_entity_link(data: Any, fallback: EntityLink | None = None) -> EntityLink | None:
    return decode(EntityLink, data, fallback)


DECODERS: dict[str, type[BaseModel]] = {
    "organization": Organization,
    "account": Account,
    "audit": Audit,
    "contact": Contact,
    "note": Note,
    "interaction": Interaction,
    "code": Code,
    "calendarEvent": CalendarEvent,
}
