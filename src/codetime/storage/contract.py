"""
Storage capability contract.

The service layer depends only on :class:`Db`. Every operation takes already
validated domain values and either returns a typed result or raises
:class:`~codetime.errors.PersistenceError`; storage-engine exceptions never
cross this boundary. No operation assumes another was called first.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any
from uuid import UUID

from codetime.schemas import (
    BadgeRow,
    HeartbeatPayload,
    LeaderboardRow,
    ProjectStatRow,
    StatRow,
    StoredApiToken,
    TimelineRow,
    TimeRange,
    TokenData,
    TokenMetadata,
)

DateRange = tuple[datetime, datetime]
JobPayload = dict[str, Any]


class Db(ABC):
    """Abstract persistence backend."""

    # --- Identity resolution ---

    @abstractmethod
    async def get_user(self, api_token: str) -> str | None:
        """Return the owner of an API token or of an unexpired access token."""
        ...

    @abstractmethod
    async def get_user_by_refresh_token(self, token: str) -> str | None:
        """Return the owner of an unexpired refresh token."""
        ...

    @abstractmethod
    async def validate_credentials(self, username: str, password: str) -> str | None:
        """Return the username when the password matches the stored hash."""
        ...

    @abstractmethod
    async def insert_user(self, username: str, hashed_password: str) -> bool:
        """Insert a user. Returns False without writing if the username is taken."""
        ...

    # --- Heartbeats ---

    @abstractmethod
    async def save_heartbeats(self, heartbeats: list[HeartbeatPayload]) -> list[int]:
        """Persist heartbeats (creating missing projects first) and return their ids."""
        ...

    # --- Aggregation reads ---

    @abstractmethod
    async def get_total_stats(
        self,
        username: str,
        time_range: DateRange,
        tag: str | None,
        cutoff: int,
    ) -> list[StatRow]:
        """Per-day activity, optionally restricted to projects carrying ``tag``."""
        ...

    @abstractmethod
    async def get_timeline_stats(self, username: str, time_range: DateRange, cutoff: int) -> list[TimelineRow]:
        ...

    @abstractmethod
    async def get_project_stats(
        self,
        username: str,
        project: str,
        time_range: DateRange,
        cutoff: int,
    ) -> list[ProjectStatRow]:
        ...

    @abstractmethod
    async def get_tag_stats(
        self,
        username: str,
        tag: str,
        time_range: DateRange,
        cutoff: int,
    ) -> list[ProjectStatRow]:
        ...

    @abstractmethod
    async def get_leaderboards(self, time_range: DateRange, cutoff: int) -> list[LeaderboardRow]:
        ...

    @abstractmethod
    async def get_total_time_between(self, ranges: list[TimeRange]) -> list[int]:
        """Total seconds per range, in DESCENDING input order (last range first)."""
        ...

    @abstractmethod
    async def get_total_time_today(self, username: str) -> int:
        ...

    # --- Token lifecycle ---

    @abstractmethod
    async def create_web_token_pair(self, token_data: TokenData, refresh_expiry_hours: int) -> None:
        """Store a new access/refresh pair, then purge the owner's expired tokens.

        The two steps commit separately; a failure between them leaves stale
        expired rows behind, which is harmless.
        """
        ...

    @abstractmethod
    async def delete_token_pair(self, access_token: str, refresh_token: str) -> int:
        """Delete both halves of a session and return the summed row count."""
        ...

    @abstractmethod
    async def create_api_token(self, owner: str) -> str:
        """Mint a non-expiring API token and return it in raw form."""
        ...

    @abstractmethod
    async def list_api_tokens(self, owner: str) -> list[StoredApiToken]:
        ...

    @abstractmethod
    async def delete_api_token(self, token_id: UUID) -> None:
        ...

    @abstractmethod
    async def touch_api_token_usage(self, api_token: str) -> None:
        """Set the token's last-used timestamp to now."""
        ...

    @abstractmethod
    async def update_token_metadata(self, owner: str, metadata: TokenMetadata) -> None:
        ...

    # --- Projects & tags ---

    @abstractmethod
    async def set_tags(self, username: str, project: str, tags: list[str]) -> int:
        """Replace every tag of the project with ``tags``. Returns associations written."""
        ...

    @abstractmethod
    async def get_tags(self, username: str, project: str) -> list[str]:
        ...

    @abstractmethod
    async def get_all_tags(self, username: str) -> list[str]:
        ...

    @abstractmethod
    async def get_all_projects(self, username: str, start: datetime, end: datetime) -> list[str]:
        """Projects with at least one heartbeat in ``[start, end)``."""
        ...

    @abstractmethod
    async def check_project_owner(self, username: str, project: str) -> bool:
        ...

    @abstractmethod
    async def check_tag_owner(self, username: str, tag: str) -> bool:
        ...

    # --- Badges ---

    @abstractmethod
    async def create_badge_link(self, username: str, project: str) -> UUID:
        """Return the badge link of the pair, creating it on first request."""
        ...

    @abstractmethod
    async def get_badge_link_info(self, link_id: UUID) -> BadgeRow | None:
        ...

    @abstractmethod
    async def get_total_activity_time(self, username: str, days: int, project: str) -> int | None:
        """Seconds spent on the project over the last ``days`` days, None without activity."""
        ...

    # --- Import jobs ---

    @abstractmethod
    async def create_job(self, payload: JobPayload) -> UUID:
        """Queue a job described by ``payload`` with status ``queued``."""
        ...

    @abstractmethod
    async def set_job_status(self, job_id: UUID, status: str) -> None:
        ...

    @abstractmethod
    async def get_job_status(self, payload: JobPayload) -> str | None:
        """Status of the most recently queued job with this payload, None if there is none."""
        ...

    @abstractmethod
    async def delete_failed_jobs(self, payload: JobPayload) -> int:
        """Remove the failed jobs carrying this payload and return how many went."""
        ...

    # --- Readiness ---

    async def ping(self) -> None:
        """Raise :class:`~codetime.errors.PersistenceError` if the backend is unreachable."""
        return None
