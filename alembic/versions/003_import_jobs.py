"""Import job queue: one row per queued bulk heartbeat import.

Revision ID: 003_import_jobs
Revises: 002_heartbeat_text_columns
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "003_import_jobs"
down_revision: str | None = "002_heartbeat_text_columns"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "import_jobs",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("status", sa.String(16), server_default="queued", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_import_jobs_payload", "import_jobs", ["payload"], postgresql_using="gin")


def downgrade() -> None:
    op.drop_index("ix_import_jobs_payload", table_name="import_jobs")
    op.drop_table("import_jobs")
