"""create event_log and snapshots tables

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:12:00.000000
"""
from typing import Sequence, Union

from alembic import op


revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Append-only event log. Payload is JSON text exactly as written by the
    # device; ordering is re-derived in memory, never from storage order.
    op.execute("""
        CREATE TABLE event_log (
            id TEXT PRIMARY KEY,
            type TEXT NOT NULL,
            entity_id TEXT,
            payload TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            device_id TEXT NOT NULL,
            inserted_at TIMESTAMPTZ DEFAULT now()
        );
    """)

    op.execute("""
        CREATE INDEX idx_event_log_timestamp ON event_log(timestamp);
    """)

    # Full documents, tagged with the newest event timestamp folded in
    op.execute("""
        CREATE TABLE snapshots (
            id TEXT PRIMARY KEY,
            doc TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            inserted_at TIMESTAMPTZ DEFAULT now()
        );
    """)

    op.execute("""
        CREATE INDEX idx_snapshots_timestamp ON snapshots(timestamp);
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS snapshots CASCADE;")
    op.execute("DROP TABLE IF EXISTS event_log CASCADE;")
