"""Statistics endpoints: activity, timelines and leaderboards."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from codetime.auth.service import get_user_by_token
from codetime.config import get_settings
from codetime.dependencies import get_api_token, get_db
from codetime.schemas import DailyTotalRow, LeaderboardRow, ProjectStatRow, StatRow, TimelineRow
from codetime.stats import service
from codetime.storage.contract import DateRange, Db

router = APIRouter(prefix="/api/v1", tags=["Statistics"])

DEFAULT_WINDOW = timedelta(days=7)
MAX_DAILY_WINDOW = timedelta(days=366)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def time_range(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
) -> DateRange:
    """Resolve the requested window, defaulting to the last seven days."""
    end = _as_utc(end) or datetime.now(timezone.utc)
    start = _as_utc(start) or end - DEFAULT_WINDOW
    if start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    return start, end


def cutoff(limit: int | None = Query(default=None, ge=1)) -> int:
    return limit or get_settings().default_cutoff


@router.get("/users/current/stats", response_model=list[StatRow])
async def get_stats(
    tag: str | None = None,
    window: DateRange = Depends(time_range),  # noqa: B008
    limit: int = Depends(cutoff),  # noqa: B008
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> list[StatRow]:
    """Per-day activity rows, optionally restricted to projects carrying ``tag``."""
    return await service.generate_statistics(db, token, limit, tag, window)


@router.get("/users/current/timeline", response_model=list[TimelineRow])
async def get_timeline(
    window: DateRange = Depends(time_range),  # noqa: B008
    limit: int = Depends(cutoff),  # noqa: B008
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> list[TimelineRow]:
    return await service.get_timeline(db, token, limit, window)


@router.get("/users/current/projects/{project}", response_model=list[ProjectStatRow])
async def get_project_stats(
    project: str,
    window: DateRange = Depends(time_range),  # noqa: B008
    limit: int = Depends(cutoff),  # noqa: B008
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> list[ProjectStatRow]:
    return await service.gen_project_statistics(db, token, project, limit, window)


@router.get("/users/current/projects/{project}/daily", response_model=list[DailyTotalRow])
async def get_daily_project_totals(
    project: str,
    window: DateRange = Depends(time_range),  # noqa: B008
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> list[DailyTotalRow]:
    """Per-day totals of one project, cut at UTC midnight."""
    start, end = window
    if end - start > MAX_DAILY_WINDOW:
        raise HTTPException(status_code=400, detail="window must not exceed 366 days")
    return await service.get_daily_project_totals(db, token, project, window)


@router.get("/users/current/tags/{tag}", response_model=list[ProjectStatRow])
async def get_tag_stats(
    tag: str,
    window: DateRange = Depends(time_range),  # noqa: B008
    limit: int = Depends(cutoff),  # noqa: B008
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> list[ProjectStatRow]:
    return await service.gen_tag_statistics(db, token, tag, limit, window)


@router.get("/users/current/status_bar/today")
async def get_today(
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> dict[str, Any]:
    """Seconds coded since UTC midnight, in the shape editor status bars read."""
    total = await service.get_total_time_today(db, token)
    return {"data": {"grand_total": {"total_seconds": total}}}


@router.get("/leaderboards", response_model=list[LeaderboardRow])
async def get_leaderboards(
    window: DateRange = Depends(time_range),  # noqa: B008
    limit: int = Depends(cutoff),  # noqa: B008
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> list[LeaderboardRow]:
    """Time per sender and language across all users; any signed-in user may look."""
    await get_user_by_token(db, token)
    return await service.get_leaderboards(db, window, limit)
