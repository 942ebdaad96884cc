"""ORM models for the tables created by the Alembic migrations."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from codetime.db.base import Base


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table."""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(64), primary_key=True)
    hashed_password: Mapped[str] = mapped_column(String(256), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class ApiToken(Base):
    """Long-lived client token. ``token`` holds the base64 form sent by clients."""

    __tablename__ = "api_tokens"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    token: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    owner: Mapped[str] = mapped_column(String(64), ForeignKey("users.username", ondelete="CASCADE"), nullable=False)
    name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    last_usage: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AuthToken(Base):
    """Short-lived access token of a browser session."""

    __tablename__ = "auth_tokens"

    token: Mapped[str] = mapped_column(String(256), primary_key=True)
    owner: Mapped[str] = mapped_column(String(64), ForeignKey("users.username", ondelete="CASCADE"), nullable=False)
    token_expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class RefreshToken(Base):
    """Renewal credential issued together with an access token."""

    __tablename__ = "refresh_tokens"

    refresh_token: Mapped[str] = mapped_column(String(256), primary_key=True)
    owner: Mapped[str] = mapped_column(String(64), ForeignKey("users.username", ondelete="CASCADE"), nullable=False)
    token_expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Projects & tags
# ---------------------------------------------------------------------------


class Project(Base):
    __tablename__ = "projects"

    owner: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.username", ondelete="CASCADE"), primary_key=True
    )
    name: Mapped[str] = mapped_column(String(256), primary_key=True)


class Tag(Base):
    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("owner", "name", name="uq_tags_owner_name"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column(String(64), ForeignKey("users.username", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)


class ProjectTag(Base):
    """Association between a project and a tag of the same owner."""

    __tablename__ = "project_tags"
    __table_args__ = (
        ForeignKeyConstraint(
            ["owner", "project_name"],
            ["projects.owner", "projects.name"],
            ondelete="CASCADE",
        ),
    )

    owner: Mapped[str] = mapped_column(String(64), primary_key=True)
    project_name: Mapped[str] = mapped_column(String(256), primary_key=True)
    tag_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)


# ---------------------------------------------------------------------------
# Heartbeats
# ---------------------------------------------------------------------------


class Heartbeat(Base):
    __tablename__ = "heartbeats"
    __table_args__ = (
        ForeignKeyConstraint(
            ["sender", "project"],
            ["projects.owner", "projects.name"],
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    sender: Mapped[str] = mapped_column(String(64), ForeignKey("users.username", ondelete="CASCADE"), nullable=False)
    time_sent: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    entity: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    category: Mapped[str | None] = mapped_column(Text, nullable=True)
    project: Mapped[str | None] = mapped_column(String(256), nullable=True)
    branch: Mapped[str | None] = mapped_column(Text, nullable=True)
    language: Mapped[str | None] = mapped_column(Text, nullable=True)
    dependencies: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False, server_default="{}")
    lines: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lineno: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cursorpos: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_write: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    editor: Mapped[str | None] = mapped_column(Text, nullable=True)
    plugin: Mapped[str | None] = mapped_column(Text, nullable=True)
    platform: Mapped[str | None] = mapped_column(Text, nullable=True)
    machine: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_agent: Mapped[str] = mapped_column(Text, nullable=False, server_default="")


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------


class BadgeLink(Base):
    """Public, unauthenticated reference to one user's project activity."""

    __tablename__ = "badges"
    __table_args__ = (UniqueConstraint("username", "project", name="uq_badges_username_project"),)

    link_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    username: Mapped[str] = mapped_column(String(64), ForeignKey("users.username", ondelete="CASCADE"), nullable=False)
    project: Mapped[str] = mapped_column(String(256), nullable=False)


# ---------------------------------------------------------------------------
# Import jobs
# ---------------------------------------------------------------------------


class ImportJob(Base):
    """A queued bulk heartbeat import; ``payload`` identifies whose import it is."""

    __tablename__ = "import_jobs"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="queued")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
