"""
Pydantic models for Orbit.

Typed read views over document entities and the backup file format.
No imports from the kernel, db, or scripts.
"""

from orbit.models.backup import Backup, BackupEvent, BackupSnapshot, ImportResult
from orbit.models.entities import (
    Account,
    AccountContact,
    Audit,
    CalendarEvent,
    Code,
    Contact,
    EntityLink,
    Interaction,
    Note,
    Organization,
    decode,
    decode_account,
    decode_contact,
    decode_entity_link,
)

__all__ = [
    # Entity models
    "Organization",
    "Account",
    "Audit",
    "Contact",
    "Note",
    "Interaction",
    "Code",
    "CalendarEvent",
    "AccountContact",
    "EntityLink",
    # Decoders
    "decode",
    "decode_account",
    "decode_contact",
    "decode_entity_link",
    # Backup models
    "Backup",
    "BackupEvent",
    "BackupSnapshot",
    "ImportResult",
]
