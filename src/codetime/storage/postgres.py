"""
PostgreSQL implementation of the storage contract.

Each contract call borrows one session from the injected factory. Writes that
must be observed atomically run in SERIALIZABLE transactions; reads are single
statements at the default isolation level.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import argon2
import structlog
from sqlalchemy import delete, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from codetime.auth.password import verify_password
from codetime.auth.tokens import random_token, to_base64
from codetime.db.models import (
    ApiToken,
    AuthToken,
    BadgeLink,
    Heartbeat,
    ImportJob,
    Project,
    ProjectTag,
    RefreshToken,
    Tag,
    User,
)
from codetime.errors import PersistenceError
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
from codetime.storage import queries
from codetime.storage.contract import DateRange, Db, JobPayload

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _heartbeat_row(beat: HeartbeatPayload) -> dict[str, Any]:
    """Map a heartbeat payload onto the 'heartbeats' columns."""
    return {
        "sender": beat.sender,
        "time_sent": datetime.fromtimestamp(beat.time, tz=timezone.utc),
        "entity": beat.entity,
        "type": beat.type,
        "category": beat.category,
        "project": beat.project,
        "branch": beat.branch,
        "language": beat.language,
        "dependencies": beat.dependencies,
        "lines": beat.lines,
        "lineno": beat.lineno,
        "cursorpos": beat.cursorpos,
        "is_write": beat.is_write,
        "editor": beat.editor,
        "plugin": beat.plugin,
        "platform": beat.platform,
        "machine": beat.machine,
        "user_agent": beat.user_agent,
    }


def unique_projects(heartbeats: list[HeartbeatPayload]) -> list[tuple[str, str]]:
    """Distinct (owner, project) pairs referenced by a batch, in first-seen order."""
    seen: dict[tuple[str, str], None] = {}
    for beat in heartbeats:
        if beat.sender is not None and beat.project is not None:
            seen.setdefault((beat.sender, beat.project), None)
    return list(seen)


class PostgresDb(Db):
    """Storage backed by an async SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        access_token_ttl: timedelta = timedelta(minutes=15),
        heartbeat_timeout: timedelta = timedelta(minutes=15),
    ) -> None:
        self._session_factory = session_factory
        self._access_token_ttl = access_token_ttl
        self._timeout_seconds = int(heartbeat_timeout.total_seconds())

    # ------------------------------------------------------------------
    # Session helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Borrow a pooled session, translating storage failures."""
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error("persistence_error", error=str(e), error_type=type(e).__name__)
            raise PersistenceError(str(e)) from e

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """A SERIALIZABLE read-write transaction, committed on clean exit."""
        async with self._session() as session:
            await session.connection(execution_options={"isolation_level": "SERIALIZABLE"})
            yield session
            await session.commit()

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[AsyncSession]:
        """A default-isolation transaction, committed on clean exit."""
        async with self._session() as session:
            yield session
            await session.commit()

    def _window_params(self, time_range: DateRange) -> dict[str, Any]:
        start, end = time_range
        return {"start": start, "end": end, "timeout_seconds": self._timeout_seconds}

    # ------------------------------------------------------------------
    # Identity resolution
    # ------------------------------------------------------------------

    async def get_user(self, api_token: str) -> str | None:
        async with self._session() as session:
            result = await session.execute(select(ApiToken.owner).where(ApiToken.token == api_token))
            owner = result.scalar_one_or_none()
            if owner is not None:
                return owner
            result = await session.execute(
                select(AuthToken.owner)
                .where(AuthToken.token == api_token)
                .where(AuthToken.token_expiry > _utcnow())
            )
            return result.scalar_one_or_none()

    async def get_user_by_refresh_token(self, token: str) -> str | None:
        async with self._session() as session:
            result = await session.execute(
                select(RefreshToken.owner)
                .where(RefreshToken.refresh_token == token)
                .where(RefreshToken.token_expiry > _utcnow())
            )
            return result.scalar_one_or_none()

    async def validate_credentials(self, username: str, password: str) -> str | None:
        async with self._session() as session:
            result = await session.execute(select(User.hashed_password).where(User.username == username))
            stored = result.scalar_one_or_none()
        if stored is None:
            return None

        try:
            valid = verify_password(stored, password)
        except (argon2.exceptions.VerificationError, argon2.exceptions.InvalidHashError) as e:
            # Crypto failures are reported to the caller as a plain mismatch.
            logger.warning("password_verification_failed", username=username, error=str(e))
            return None
        return username if valid else None

    async def _username_taken(self, username: str) -> bool:
        async with self._session() as session:
            result = await session.execute(select(User.username).where(User.username == username))
            return result.scalar_one_or_none() is not None

    async def insert_user(self, username: str, hashed_password: str) -> bool:
        try:
            async with self._transaction() as session:
                result = await session.execute(select(User.username).where(User.username == username))
                if result.scalar_one_or_none() is not None:
                    return False
                session.add(User(username=username, hashed_password=hashed_password, created_at=_utcnow()))
                await session.flush()
        except PersistenceError as e:
            # Unique violation or serialization failure: a concurrent registration got the name first.
            if isinstance(e.__cause__, DBAPIError) and await self._username_taken(username):
                logger.info("user_insert_lost_race", username=username)
                return False
            raise
        logger.info("user_created", username=username)
        return True

    # ------------------------------------------------------------------
    # Heartbeats
    # ------------------------------------------------------------------

    async def save_heartbeats(self, heartbeats: list[HeartbeatPayload]) -> list[int]:
        if not heartbeats:
            return []

        async with self._write() as session:
            # Projects first so the heartbeat rows can reference them.
            for owner, name in unique_projects(heartbeats):
                stmt = pg_insert(Project).values(owner=owner, name=name)
                await session.execute(stmt.on_conflict_do_nothing(index_elements=["owner", "name"]))

            ids: list[int] = []
            for beat in heartbeats:
                result = await session.execute(
                    pg_insert(Heartbeat).values(**_heartbeat_row(beat)).returning(Heartbeat.id)
                )
                ids.append(result.scalar_one())
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
        params = {"username": username, "cutoff": cutoff, **self._window_params(time_range)}
        if tag is None:
            stmt = queries.USER_ACTIVITY
        else:
            stmt = queries.USER_ACTIVITY_BY_TAG
            params["tag"] = tag
        async with self._session() as session:
            result = await session.execute(stmt, params)
            return [StatRow.model_validate(dict(row._mapping)) for row in result]

    async def get_timeline_stats(self, username: str, time_range: DateRange, cutoff: int) -> list[TimelineRow]:
        params = {"username": username, "cutoff": cutoff, **self._window_params(time_range)}
        async with self._session() as session:
            result = await session.execute(queries.TIMELINE, params)
            return [TimelineRow.model_validate(dict(row._mapping)) for row in result]

    async def get_project_stats(
        self,
        username: str,
        project: str,
        time_range: DateRange,
        cutoff: int,
    ) -> list[ProjectStatRow]:
        params = {"username": username, "project": project, "cutoff": cutoff, **self._window_params(time_range)}
        async with self._session() as session:
            result = await session.execute(queries.PROJECT_STATS, params)
            return [ProjectStatRow.model_validate(dict(row._mapping)) for row in result]

    async def get_tag_stats(
        self,
        username: str,
        tag: str,
        time_range: DateRange,
        cutoff: int,
    ) -> list[ProjectStatRow]:
        params = {"username": username, "tag": tag, "cutoff": cutoff, **self._window_params(time_range)}
        async with self._session() as session:
            result = await session.execute(queries.TAG_STATS, params)
            return [ProjectStatRow.model_validate(dict(row._mapping)) for row in result]

    async def get_leaderboards(self, time_range: DateRange, cutoff: int) -> list[LeaderboardRow]:
        params = {"cutoff": cutoff, **self._window_params(time_range)}
        async with self._session() as session:
            result = await session.execute(queries.LEADERBOARDS, params)
            return [LeaderboardRow.model_validate(dict(row._mapping)) for row in result]

    async def get_total_time_between(self, ranges: list[TimeRange]) -> list[int]:
        if not ranges:
            return []
        params = {
            "usernames": [r.username for r in ranges],
            "projects": [r.project for r in ranges],
            "starts": [r.start for r in ranges],
            "ends": [r.end for r in ranges],
            "timeout_seconds": self._timeout_seconds,
        }
        async with self._session() as session:
            result = await session.execute(queries.TOTAL_TIME_BETWEEN, params)
            return [int(total) for total in result.scalars()]

    async def get_total_time_today(self, username: str) -> int:
        now = _utcnow()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        params = {"username": username, **self._window_params((midnight, now))}
        async with self._session() as session:
            result = await session.execute(queries.TOTAL_TIME, params)
            return int(result.scalar_one())

    # ------------------------------------------------------------------
    # Token lifecycle
    # ------------------------------------------------------------------

    async def create_web_token_pair(self, token_data: TokenData, refresh_expiry_hours: int) -> None:
        now = _utcnow()
        async with self._transaction() as session:
            session.add(
                AuthToken(
                    token=token_data.token,
                    owner=token_data.owner,
                    token_expiry=now + self._access_token_ttl,
                )
            )
            session.add(
                RefreshToken(
                    refresh_token=token_data.refresh_token,
                    owner=token_data.owner,
                    token_expiry=now + timedelta(hours=refresh_expiry_hours),
                )
            )
            await session.flush()

        # Separate transaction: a crash here only leaves expired rows behind.
        async with self._transaction() as session:
            expired_access = await session.execute(
                delete(AuthToken)
                .where(AuthToken.owner == token_data.owner)
                .where(AuthToken.token_expiry <= now)
            )
            expired_refresh = await session.execute(
                delete(RefreshToken)
                .where(RefreshToken.owner == token_data.owner)
                .where(RefreshToken.token_expiry <= now)
            )
            purged = expired_access.rowcount + expired_refresh.rowcount
        logger.info("token_pair_created", owner=token_data.owner, purged=purged)

    async def delete_token_pair(self, access_token: str, refresh_token: str) -> int:
        async with self._transaction() as session:
            result = await session.execute(delete(AuthToken).where(AuthToken.token == access_token))
            deleted = result.rowcount
        async with self._transaction() as session:
            result = await session.execute(
                delete(RefreshToken).where(RefreshToken.refresh_token == refresh_token)
            )
            deleted += result.rowcount
        return deleted

    async def create_api_token(self, owner: str) -> str:
        raw_token = random_token()
        async with self._write() as session:
            session.add(ApiToken(token=to_base64(raw_token), owner=owner, created_at=_utcnow()))
            await session.flush()
        logger.info("api_token_created", owner=owner)
        return raw_token

    async def list_api_tokens(self, owner: str) -> list[StoredApiToken]:
        async with self._session() as session:
            result = await session.execute(
                select(ApiToken).where(ApiToken.owner == owner).order_by(ApiToken.created_at.desc())
            )
            return [
                StoredApiToken(token_id=UUID(t.id), token_name=t.name, last_usage=t.last_usage)
                for t in result.scalars()
            ]

    async def delete_api_token(self, token_id: UUID) -> None:
        async with self._write() as session:
            await session.execute(delete(ApiToken).where(ApiToken.id == str(token_id)))

    async def touch_api_token_usage(self, api_token: str) -> None:
        async with self._write() as session:
            await session.execute(
                update(ApiToken).where(ApiToken.token == api_token).values(last_usage=_utcnow())
            )

    async def update_token_metadata(self, owner: str, metadata: TokenMetadata) -> None:
        async with self._write() as session:
            await session.execute(
                update(ApiToken)
                .where(ApiToken.id == str(metadata.token_id))
                .where(ApiToken.owner == owner)
                .values(name=metadata.token_name)
            )

    # ------------------------------------------------------------------
    # Projects & tags
    # ------------------------------------------------------------------

    async def set_tags(self, username: str, project: str, tags: list[str]) -> int:
        names = list(dict.fromkeys(tags))
        async with self._transaction() as session:
            tag_ids: list[int] = []
            if names:
                await session.execute(
                    pg_insert(Tag)
                    .values([{"owner": username, "name": name} for name in names])
                    .on_conflict_do_nothing(index_elements=["owner", "name"])
                )
                result = await session.execute(
                    select(Tag.id).where(Tag.owner == username).where(Tag.name.in_(names))
                )
                tag_ids = list(result.scalars())

            await session.execute(
                delete(ProjectTag)
                .where(ProjectTag.project_name == project)
                .where(ProjectTag.owner == username)
            )

            if tag_ids:
                await session.execute(
                    pg_insert(ProjectTag).values(
                        [{"owner": username, "project_name": project, "tag_id": tag_id} for tag_id in tag_ids]
                    )
                )
        return len(tag_ids)

    async def get_tags(self, username: str, project: str) -> list[str]:
        async with self._session() as session:
            result = await session.execute(
                select(Tag.name)
                .join(ProjectTag, ProjectTag.tag_id == Tag.id)
                .where(ProjectTag.owner == username)
                .where(ProjectTag.project_name == project)
                .order_by(Tag.name)
            )
            return list(result.scalars())

    async def get_all_tags(self, username: str) -> list[str]:
        async with self._session() as session:
            result = await session.execute(select(Tag.name).where(Tag.owner == username).order_by(Tag.name))
            return list(result.scalars())

    async def get_all_projects(self, username: str, start: datetime, end: datetime) -> list[str]:
        async with self._session() as session:
            result = await session.execute(
                select(Heartbeat.project)
                .distinct()
                .where(Heartbeat.sender == username)
                .where(Heartbeat.project.is_not(None))
                .where(Heartbeat.time_sent >= start)
                .where(Heartbeat.time_sent < end)
                .order_by(Heartbeat.project)
            )
            return list(result.scalars())

    async def check_project_owner(self, username: str, project: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(Project.name).where(Project.owner == username).where(Project.name == project)
            )
            return result.scalar_one_or_none() is not None

    async def check_tag_owner(self, username: str, tag: str) -> bool:
        async with self._session() as session:
            result = await session.execute(select(Tag.id).where(Tag.owner == username).where(Tag.name == tag))
            return result.scalar_one_or_none() is not None

    # ------------------------------------------------------------------
    # Badges
    # ------------------------------------------------------------------

    async def create_badge_link(self, username: str, project: str) -> UUID:
        async with self._write() as session:
            await session.execute(
                pg_insert(BadgeLink)
                .values(username=username, project=project)
                .on_conflict_do_nothing(index_elements=["username", "project"])
            )
            result = await session.execute(
                select(BadgeLink.link_id)
                .where(BadgeLink.username == username)
                .where(BadgeLink.project == project)
            )
            return UUID(result.scalar_one())

    async def get_badge_link_info(self, link_id: UUID) -> BadgeRow | None:
        async with self._session() as session:
            result = await session.execute(select(BadgeLink).where(BadgeLink.link_id == str(link_id)))
            link = result.scalar_one_or_none()
            if link is None:
                return None
            return BadgeRow(username=link.username, project=link.project)

    async def get_total_activity_time(self, username: str, days: int, project: str) -> int | None:
        now = _utcnow()
        params = {
            "username": username,
            "project": project,
            **self._window_params((now - timedelta(days=days), now)),
        }
        async with self._session() as session:
            result = await session.execute(queries.PROJECT_TOTAL_TIME, params)
            total = result.scalar_one()
            return None if total is None else int(total)

    # ------------------------------------------------------------------
    # Import jobs
    # ------------------------------------------------------------------

    async def create_job(self, payload: JobPayload) -> UUID:
        async with self._write() as session:
            result = await session.execute(
                pg_insert(ImportJob).values(payload=payload, status="queued").returning(ImportJob.id)
            )
            return UUID(result.scalar_one())

    async def set_job_status(self, job_id: UUID, status: str) -> None:
        async with self._write() as session:
            await session.execute(
                update(ImportJob).where(ImportJob.id == str(job_id)).values(status=status, updated_at=_utcnow())
            )

    async def get_job_status(self, payload: JobPayload) -> str | None:
        async with self._session() as session:
            result = await session.execute(
                select(ImportJob.status)
                .where(ImportJob.payload.contains(payload))
                .where(ImportJob.payload.contained_by(payload))
                .order_by(ImportJob.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def delete_failed_jobs(self, payload: JobPayload) -> int:
        async with self._write() as session:
            result = await session.execute(
                delete(ImportJob)
                .where(ImportJob.payload.contains(payload))
                .where(ImportJob.payload.contained_by(payload))
                .where(ImportJob.status == "failed")
            )
            return result.rowcount

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    async def ping(self) -> None:
        async with self._session() as session:
            await session.execute(text("SELECT 1"))
