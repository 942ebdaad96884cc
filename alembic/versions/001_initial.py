"""Initial schema: users, tokens, projects, tags, heartbeats and badges.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    # --- Users ---
    op.create_table(
        "users",
        sa.Column("username", sa.String(64), primary_key=True),
        sa.Column("hashed_password", sa.String(256), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # --- Tokens ---
    op.create_table(
        "api_tokens",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("token", sa.String(256), nullable=False, unique=True),
        sa.Column("owner", sa.String(64), sa.ForeignKey("users.username", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_usage", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_api_tokens_owner", "api_tokens", ["owner"])

    op.create_table(
        "auth_tokens",
        sa.Column("token", sa.String(256), primary_key=True),
        sa.Column("owner", sa.String(64), sa.ForeignKey("users.username", ondelete="CASCADE"), nullable=False),
        sa.Column("token_expiry", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_auth_tokens_owner", "auth_tokens", ["owner"])

    op.create_table(
        "refresh_tokens",
        sa.Column("refresh_token", sa.String(256), primary_key=True),
        sa.Column("owner", sa.String(64), sa.ForeignKey("users.username", ondelete="CASCADE"), nullable=False),
        sa.Column("token_expiry", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_refresh_tokens_owner", "refresh_tokens", ["owner"])

    # --- Projects & tags ---
    op.create_table(
        "projects",
        sa.Column("owner", sa.String(64), sa.ForeignKey("users.username", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.PrimaryKeyConstraint("owner", "name"),
    )

    op.create_table(
        "tags",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("owner", sa.String(64), sa.ForeignKey("users.username", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.UniqueConstraint("owner", "name", name="uq_tags_owner_name"),
    )

    op.create_table(
        "project_tags",
        sa.Column("owner", sa.String(64), nullable=False),
        sa.Column("project_name", sa.String(256), nullable=False),
        sa.Column("tag_id", sa.BigInteger(), sa.ForeignKey("tags.id", ondelete="CASCADE"), nullable=False),
        sa.PrimaryKeyConstraint("owner", "project_name", "tag_id"),
        sa.ForeignKeyConstraint(
            ["owner", "project_name"],
            ["projects.owner", "projects.name"],
            ondelete="CASCADE",
        ),
    )

    # --- Heartbeats ---
    op.create_table(
        "heartbeats",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("sender", sa.String(64), sa.ForeignKey("users.username", ondelete="CASCADE"), nullable=False),
        sa.Column("time_sent", sa.DateTime(timezone=True), nullable=False),
        sa.Column("entity", sa.Text(), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("project", sa.String(256), nullable=True),
        sa.Column("branch", sa.String(256), nullable=True),
        sa.Column("language", sa.String(64), nullable=True),
        sa.Column("dependencies", postgresql.ARRAY(sa.Text()), server_default="{}", nullable=False),
        sa.Column("lines", sa.Integer(), nullable=True),
        sa.Column("lineno", sa.Integer(), nullable=True),
        sa.Column("cursorpos", sa.Integer(), nullable=True),
        sa.Column("is_write", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("editor", sa.String(64), nullable=True),
        sa.Column("plugin", sa.String(64), nullable=True),
        sa.Column("platform", sa.String(64), nullable=True),
        sa.Column("machine", sa.String(128), nullable=True),
        sa.Column("user_agent", sa.String(512), server_default="", nullable=False),
        sa.ForeignKeyConstraint(["sender", "project"], ["projects.owner", "projects.name"]),
    )
    op.create_index("ix_heartbeats_time_sent", "heartbeats", ["time_sent"])
    op.create_index("ix_heartbeats_sender_time_sent", "heartbeats", ["sender", "time_sent"])

    # --- Badges ---
    op.create_table(
        "badges",
        sa.Column("link_id", postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("username", sa.String(64), sa.ForeignKey("users.username", ondelete="CASCADE"), nullable=False),
        sa.Column("project", sa.String(256), nullable=False),
        sa.UniqueConstraint("username", "project", name="uq_badges_username_project"),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("badges")
    op.drop_index("ix_heartbeats_sender_time_sent", table_name="heartbeats")
    op.drop_index("ix_heartbeats_time_sent", table_name="heartbeats")
    op.drop_table("heartbeats")
    op.drop_table("project_tags")
    op.drop_table("tags")
    op.drop_table("projects")
    op.drop_index("ix_refresh_tokens_owner", table_name="refresh_tokens")
    op.drop_table("refresh_tokens")
    op.drop_index("ix_auth_tokens_owner", table_name="auth_tokens")
    op.drop_table("auth_tokens")
    op.drop_index("ix_api_tokens_owner", table_name="api_tokens")
    op.drop_table("api_tokens")
    op.drop_table("users")
