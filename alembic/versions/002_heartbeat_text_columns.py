"""Store free-form heartbeat attributes as unbounded text.

Editor plugins send branch names, user agents and machine names of any length.

Revision ID: 002_heartbeat_text_columns
Revises: 001_initial
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "002_heartbeat_text_columns"
down_revision: str | None = "001_initial"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# column -> length it had before this revision
_WIDENED = {
    "category": 64,
    "branch": 256,
    "language": 64,
    "editor": 64,
    "plugin": 64,
    "platform": 64,
    "machine": 128,
    "user_agent": 512,
}


def upgrade() -> None:
    for column, length in _WIDENED.items():
        op.alter_column("heartbeats", column, type_=sa.Text(), existing_type=sa.String(length))


def downgrade() -> None:
    for column, length in _WIDENED.items():
        op.alter_column(
            "heartbeats",
            column,
            type_=sa.String(length),
            existing_type=sa.Text(),
            postgresql_using=f"left({column}, {length})",
        )
