"""record the last event folded into each snapshot

Revision ID: 002
Revises: 001
Create Date: 2026-10-17 14:40:00.000000
"""
from typing import Sequence, Union

from alembic import op


revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Rows written before this revision keep event_id NULL and load by
    # timestamp alone.
    op.execute("""
        ALTER TABLE snapshots ADD COLUMN event_id TEXT;
    """)


def downgrade() -> None:
    op.execute("ALTER TABLE snapshots DROP COLUMN IF EXISTS event_id;")
