"""Backup file models: a portable copy of the event log plus the latest snapshot."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

BACKUP_VERSION = 1


class BackupEvent(BaseModel):
    """One event as it appears in a backup file (camelCase wire format)."""

    model_config = {"populate_by_name": True, "extra": "forbid"}

    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    entity_id: str | None = Field(default=None, alias="entityId")
    payload: Any
    timestamp: str = Field(min_length=1)
    device_id: str = Field(min_length=1, alias="deviceId")


class BackupSnapshot(BaseModel):
    model_config = {"populate_by_name": True, "extra": "forbid"}

    id: str = Field(min_length=1)
    doc: str = Field(min_length=1)
    timestamp: str = Field(min_length=1)
    event_id: str | None = Field(default=None, alias="eventId")


class Backup(BaseModel):
    """What export writes and import reads."""

    model_config = {"populate_by_name": True, "extra": "forbid"}

    version: int = BACKUP_VERSION
    created_at: str = Field(alias="createdAt")
    device_id: str = Field(min_length=1, alias="deviceId")
    app_version: str | None = Field(default=None, alias="appVersion")
    events: list[BackupEvent] = Field(default_factory=list)
    snapshot: BackupSnapshot | None = None


class ImportResult(BaseModel):
    """Outcome of importing a backup."""

    mode: Literal["merge", "replace"]
    events_imported: int
    events_skipped: int
    snapshot_applied: bool
