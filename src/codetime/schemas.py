"""Domain values shared by the storage contract and the service layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Heartbeats
# ---------------------------------------------------------------------------


class HeartbeatPayload(BaseModel):
    """A single activity event as sent by an editor plugin.

    ``sender``, ``editor``, ``plugin`` and ``platform`` are accepted from the
    client but always replaced during ingestion.
    """

    model_config = ConfigDict(extra="ignore")

    time: float
    entity: str
    type: str = Field(default="file", max_length=32)
    category: str | None = None
    project: str | None = Field(default=None, max_length=256)
    branch: str | None = None
    language: str | None = None
    dependencies: list[str] = Field(default_factory=list)
    lines: int | None = None
    lineno: int | None = None
    cursorpos: int | None = None
    is_write: bool = False
    machine: str | None = None
    user_agent: str = ""
    sender: str | None = None
    editor: str | None = None
    plugin: str | None = None
    platform: str | None = None


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenData(BaseModel):
    """An access/refresh token pair minted together for one user."""

    owner: str
    token: str
    refresh_token: str


class TokenMetadata(BaseModel):
    """User-editable attributes of an API token."""

    token_id: UUID
    token_name: str = Field(..., min_length=1, max_length=64)


class StoredApiToken(BaseModel):
    """API token as listed back to its owner (never the token itself)."""

    token_id: UUID
    token_name: str | None = None
    last_usage: datetime | None = None


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class StatRow(BaseModel):
    day: datetime
    project: str | None = None
    language: str | None = None
    editor: str | None = None
    branch: str | None = None
    platform: str | None = None
    machine: str | None = None
    entity: str
    total_seconds: int
    pct: float
    daily_total_seconds: int


class ProjectStatRow(BaseModel):
    day: datetime
    language: str | None = None
    entity: str
    weekday: int
    hour: int
    total_seconds: int
    pct: float
    daily_total_seconds: int


class TimelineRow(BaseModel):
    language: str | None = None
    project: str | None = None
    range_start: datetime
    range_end: datetime


class LeaderboardRow(BaseModel):
    sender: str
    language: str | None = None
    total_seconds: int


class BadgeRow(BaseModel):
    username: str
    project: str


class DailyTotalRow(BaseModel):
    """Seconds spent on one project between ``start`` and ``end``."""

    start: datetime
    end: datetime
    total_seconds: int


class TimeRange(BaseModel):
    """One (user, project, start, end) window for total-time lookups."""

    username: str
    project: str
    start: datetime
    end: datetime
