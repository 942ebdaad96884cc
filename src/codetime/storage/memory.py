"""
In-memory implementation of the storage contract.

Deterministic and dependency-free, so the service layer and the HTTP surface
can be exercised without a database. The clock is injectable; aggregation
follows the same duration rules as the SQL queries.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

import argon2
import structlog

from codetime.auth.password import verify_password
from codetime.auth.tokens import random_token, to_base64
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
from codetime.storage.contract import DateRange, Db, JobPayload

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StoredToken:
    owner: str
    expiry: datetime


@dataclass
class StoredApiTokenRecord:
    id: UUID
    token: str
    owner: str
    created_at: datetime
    name: str | None = None
    last_usage: datetime | None = None


@dataclass
class StoredHeartbeat:
    id: int
    time_sent: datetime
    payload: HeartbeatPayload


@dataclass
class StoredJob:
    id: UUID
    payload: JobPayload
    status: str
    created_at: datetime


@dataclass
class _Span:
    beat: StoredHeartbeat
    seconds: float

    @property
    def payload(self) -> HeartbeatPayload:
        return self.beat.payload


def _day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _nulls_last(value: str | None) -> tuple[bool, str]:
    """Sort key part placing None after every string, as ORDER BY ... ASC does."""
    return value is None, value or ""


@dataclass
class InMemoryDb(Db):
    """Storage kept in plain Python containers."""

    clock: Callable[[], datetime] = _utcnow
    access_token_ttl: timedelta = timedelta(minutes=15)
    heartbeat_timeout: timedelta = timedelta(minutes=15)

    users: dict[str, str] = field(default_factory=dict)
    api_tokens: dict[UUID, StoredApiTokenRecord] = field(default_factory=dict)
    access_tokens: dict[str, StoredToken] = field(default_factory=dict)
    refresh_tokens: dict[str, StoredToken] = field(default_factory=dict)
    projects: set[tuple[str, str]] = field(default_factory=set)
    tags: dict[tuple[str, str], int] = field(default_factory=dict)
    project_tags: set[tuple[str, str, int]] = field(default_factory=set)
    heartbeats: list[StoredHeartbeat] = field(default_factory=list)
    badges: dict[UUID, BadgeRow] = field(default_factory=dict)
    jobs: list[StoredJob] = field(default_factory=list)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _spans(self, start: datetime, end: datetime, username: str | None = None) -> list[_Span]:
        """Heartbeats in ``[start, end)`` with the seconds each one carries over."""
        per_sender: dict[str, list[StoredHeartbeat]] = defaultdict(list)
        for beat in self.heartbeats:
            if username is not None and beat.payload.sender != username:
                continue
            if start <= beat.time_sent < end:
                per_sender[beat.payload.sender or ""].append(beat)

        spans: list[_Span] = []
        for beats in per_sender.values():
            beats.sort(key=lambda b: (b.time_sent, b.id))
            for current, following in zip(beats, [*beats[1:], None]):
                seconds = 0.0
                if following is not None:
                    gap = following.time_sent - current.time_sent
                    if gap <= self.heartbeat_timeout:
                        seconds = gap.total_seconds()
                spans.append(_Span(current, seconds))
        spans.sort(key=lambda s: (s.beat.time_sent, s.beat.id))
        return spans

    def _tagged_projects(self, username: str, tag: str) -> set[str]:
        tag_id = self.tags.get((username, tag))
        return {project for owner, project, tid in self.project_tags if owner == username and tid == tag_id}

    @staticmethod
    def _with_daily_share(
        grouped: dict[tuple, float],
    ) -> Iterable[tuple[tuple, float, float, float]]:
        daily: dict[datetime, float] = defaultdict(float)
        for key, seconds in grouped.items():
            daily[key[0]] += seconds
        for key, seconds in grouped.items():
            total = daily[key[0]]
            yield key, seconds, (seconds / total if total else 0.0), total

    # ------------------------------------------------------------------
    # Identity resolution
    # ------------------------------------------------------------------

    async def get_user(self, api_token: str) -> str | None:
        for record in self.api_tokens.values():
            if record.token == api_token:
                return record.owner
        access = self.access_tokens.get(api_token)
        if access is not None and access.expiry > self.clock():
            return access.owner
        return None

    async def get_user_by_refresh_token(self, token: str) -> str | None:
        refresh = self.refresh_tokens.get(token)
        if refresh is not None and refresh.expiry > self.clock():
            return refresh.owner
        return None

    async def validate_credentials(self, username: str, password: str) -> str | None:
        stored = self.users.get(username)
        if stored is None:
            return None
        try:
            valid = verify_password(stored, password)
        except (argon2.exceptions.VerificationError, argon2.exceptions.InvalidHashError) as e:
            logger.warning("password_verification_failed", username=username, error=str(e))
            return None
        return username if valid else None

    async def insert_user(self, username: str, hashed_password: str) -> bool:
        if username in self.users:
            return False
        self.users[username] = hashed_password
        return True

    # ------------------------------------------------------------------
    # Heartbeats
    # ------------------------------------------------------------------

    async def save_heartbeats(self, heartbeats: list[HeartbeatPayload]) -> list[int]:
        for beat in heartbeats:
            if beat.sender is not None and beat.project is not None:
                self.projects.add((beat.sender, beat.project))

        ids: list[int] = []
        for beat in heartbeats:
            stored = StoredHeartbeat(
                id=len(self.heartbeats) + 1,
                time_sent=datetime.fromtimestamp(beat.time, tz=timezone.utc),
                payload=beat,
            )
            self.heartbeats.append(stored)
            ids.append(stored.id)
        return ids

    # ------------------------------------------------------------------
    # Aggregation reads
    # ------------------------------------------------------------------

    async def get_total_stats(
        self,
        username: str,
        time_range: DateRange,
        tag: str | None,
        cutoff: int,
    ) -> list[StatRow]:
        spans = self._spans(*time_range, username=username)
        if tag is not None:
            tagged = self._tagged_projects(username, tag)
            spans = [s for s in spans if s.payload.project in tagged]

        grouped: dict[tuple, float] = defaultdict(float)
        for span in spans:
            p = span.payload
            key = (_day(span.beat.time_sent), p.project, p.language, p.editor, p.branch, p.platform, p.machine, p.entity)
            grouped[key] += span.seconds

        rows = [
            StatRow(
                day=key[0],
                project=key[1],
                language=key[2],
                editor=key[3],
                branch=key[4],
                platform=key[5],
                machine=key[6],
                entity=key[7],
                total_seconds=round(seconds),
                pct=pct,
                daily_total_seconds=round(daily),
            )
            for key, seconds, pct, daily in self._with_daily_share(grouped)
        ]
        rows.sort(
            key=lambda r: (r.day, -r.total_seconds, *_nulls_last(r.project), *_nulls_last(r.language), r.entity)
        )
        return rows[:cutoff]

    async def get_timeline_stats(self, username: str, time_range: DateRange, cutoff: int) -> list[TimelineRow]:
        rows: list[TimelineRow] = []
        previous: _Span | None = None
        for span in self._spans(*time_range, username=username):
            p = span.payload
            end = span.beat.time_sent + timedelta(seconds=span.seconds)
            continues = (
                previous is not None
                and previous.seconds > 0
                and previous.payload.language == p.language
                and previous.payload.project == p.project
            )
            if continues:
                rows[-1] = rows[-1].model_copy(update={"range_end": max(rows[-1].range_end, end)})
            else:
                rows.append(
                    TimelineRow(language=p.language, project=p.project, range_start=span.beat.time_sent, range_end=end)
                )
            previous = span
        rows.sort(key=lambda r: (r.range_start, *_nulls_last(r.project), *_nulls_last(r.language)))
        return rows[:cutoff]

    def _project_rows(self, spans: list[_Span], cutoff: int) -> list[ProjectStatRow]:
        grouped: dict[tuple, float] = defaultdict(float)
        for span in spans:
            moment = span.beat.time_sent
            # Sunday is 0, matching EXTRACT(DOW ...).
            key = (_day(moment), span.payload.language, span.payload.entity, (moment.weekday() + 1) % 7, moment.hour)
            grouped[key] += span.seconds

        rows = [
            ProjectStatRow(
                day=key[0],
                language=key[1],
                entity=key[2],
                weekday=key[3],
                hour=key[4],
                total_seconds=round(seconds),
                pct=pct,
                daily_total_seconds=round(daily),
            )
            for key, seconds, pct, daily in self._with_daily_share(grouped)
        ]
        rows.sort(key=lambda r: (r.day, -r.total_seconds, *_nulls_last(r.language), r.entity))
        return rows[:cutoff]

    async def get_project_stats(
        self,
        username: str,
        project: str,
        time_range: DateRange,
        cutoff: int,
    ) -> list[ProjectStatRow]:
        spans = [s for s in self._spans(*time_range, username=username) if s.payload.project == project]
        return self._project_rows(spans, cutoff)

    async def get_tag_stats(
        self,
        username: str,
        tag: str,
        time_range: DateRange,
        cutoff: int,
    ) -> list[ProjectStatRow]:
        tagged = self._tagged_projects(username, tag)
        spans = [s for s in self._spans(*time_range, username=username) if s.payload.project in tagged]
        return self._project_rows(spans, cutoff)

    async def get_leaderboards(self, time_range: DateRange, cutoff: int) -> list[LeaderboardRow]:
        totals: dict[tuple[str, str | None], float] = defaultdict(float)
        for span in self._spans(*time_range):
            totals[(span.payload.sender or "", span.payload.language)] += span.seconds

        rows = [
            LeaderboardRow(sender=sender, language=language, total_seconds=round(seconds))
            for (sender, language), seconds in totals.items()
            if seconds > 0
        ]
        rows.sort(key=lambda r: (-r.total_seconds, r.sender, *_nulls_last(r.language)))
        return rows[:cutoff]

    async def get_total_time_between(self, ranges: list[TimeRange]) -> list[int]:
        totals = []
        for r in ranges:
            spans = self._spans(r.start, r.end, username=r.username)
            totals.append(round(sum(s.seconds for s in spans if s.payload.project == r.project)))
        # Storage order is last range first.
        return list(reversed(totals))

    async def get_total_time_today(self, username: str) -> int:
        now = self.clock()
        spans = self._spans(_day(now), now, username=username)
        return round(sum(s.seconds for s in spans))

    # ------------------------------------------------------------------
    # Token lifecycle
    # ------------------------------------------------------------------

    async def create_web_token_pair(self, token_data: TokenData, refresh_expiry_hours: int) -> None:
        now = self.clock()
        self.access_tokens[token_data.token] = StoredToken(token_data.owner, now + self.access_token_ttl)
        self.refresh_tokens[token_data.refresh_token] = StoredToken(
            token_data.owner, now + timedelta(hours=refresh_expiry_hours)
        )

        for tokens in (self.access_tokens, self.refresh_tokens):
            expired = [k for k, v in tokens.items() if v.owner == token_data.owner and v.expiry <= now]
            for key in expired:
                del tokens[key]

    async def delete_token_pair(self, access_token: str, refresh_token: str) -> int:
        deleted = 0
        if self.access_tokens.pop(access_token, None) is not None:
            deleted += 1
        if self.refresh_tokens.pop(refresh_token, None) is not None:
            deleted += 1
        return deleted

    async def create_api_token(self, owner: str) -> str:
        raw_token = random_token()
        record = StoredApiTokenRecord(
            id=uuid.uuid4(),
            token=to_base64(raw_token),
            owner=owner,
            created_at=self.clock(),
        )
        self.api_tokens[record.id] = record
        return raw_token

    async def list_api_tokens(self, owner: str) -> list[StoredApiToken]:
        records = sorted(
            (r for r in self.api_tokens.values() if r.owner == owner),
            key=lambda r: r.created_at,
            reverse=True,
        )
        return [StoredApiToken(token_id=r.id, token_name=r.name, last_usage=r.last_usage) for r in records]

    async def delete_api_token(self, token_id: UUID) -> None:
        self.api_tokens.pop(token_id, None)

    async def touch_api_token_usage(self, api_token: str) -> None:
        for record in self.api_tokens.values():
            if record.token == api_token:
                record.last_usage = self.clock()

    async def update_token_metadata(self, owner: str, metadata: TokenMetadata) -> None:
        record = self.api_tokens.get(metadata.token_id)
        if record is not None and record.owner == owner:
            record.name = metadata.token_name

    # ------------------------------------------------------------------
    # Projects & tags
    # ------------------------------------------------------------------

    async def set_tags(self, username: str, project: str, tags: list[str]) -> int:
        tag_ids = []
        for name in dict.fromkeys(tags):
            if (username, name) not in self.tags:
                self.tags[(username, name)] = len(self.tags) + 1
            tag_ids.append(self.tags[(username, name)])

        self.project_tags = {
            (owner, proj, tid) for owner, proj, tid in self.project_tags if not (owner == username and proj == project)
        }
        self.project_tags.update((username, project, tid) for tid in tag_ids)
        return len(tag_ids)

    async def get_tags(self, username: str, project: str) -> list[str]:
        names = {tid: name for (owner, name), tid in self.tags.items() if owner == username}
        return sorted(names[tid] for owner, proj, tid in self.project_tags if owner == username and proj == project)

    async def get_all_tags(self, username: str) -> list[str]:
        return sorted(name for owner, name in self.tags if owner == username)

    async def get_all_projects(self, username: str, start: datetime, end: datetime) -> list[str]:
        return sorted(
            {
                b.payload.project
                for b in self.heartbeats
                if b.payload.sender == username and b.payload.project is not None and start <= b.time_sent < end
            }
        )

    async def check_project_owner(self, username: str, project: str) -> bool:
        return (username, project) in self.projects

    async def check_tag_owner(self, username: str, tag: str) -> bool:
        return (username, tag) in self.tags

    # ------------------------------------------------------------------
    # Badges
    # ------------------------------------------------------------------

    async def create_badge_link(self, username: str, project: str) -> UUID:
        for link_id, row in self.badges.items():
            if row.username == username and row.project == project:
                return link_id
        link_id = uuid.uuid4()
        self.badges[link_id] = BadgeRow(username=username, project=project)
        return link_id

    async def get_badge_link_info(self, link_id: UUID) -> BadgeRow | None:
        return self.badges.get(link_id)

    async def get_total_activity_time(self, username: str, days: int, project: str) -> int | None:
        now = self.clock()
        spans = [
            s for s in self._spans(now - timedelta(days=days), now, username=username) if s.payload.project == project
        ]
        if not spans:
            return None
        return round(sum(s.seconds for s in spans))

    # ------------------------------------------------------------------
    # Import jobs
    # ------------------------------------------------------------------

    async def create_job(self, payload: JobPayload) -> UUID:
        job = StoredJob(id=uuid.uuid4(), payload=dict(payload), status="queued", created_at=self.clock())
        self.jobs.append(job)
        return job.id

    async def set_job_status(self, job_id: UUID, status: str) -> None:
        for job in self.jobs:
            if job.id == job_id:
                job.status = status

    async def get_job_status(self, payload: JobPayload) -> str | None:
        matching = [job for job in self.jobs if job.payload == payload]
        return matching[-1].status if matching else None

    async def delete_failed_jobs(self, payload: JobPayload) -> int:
        kept = [job for job in self.jobs if not (job.payload == payload and job.status == "failed")]
        deleted = len(self.jobs) - len(kept)
        self.jobs = kept
        return deleted
