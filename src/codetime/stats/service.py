"""Statistics, timelines and leaderboards."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from codetime.auth.service import get_user_by_token
from codetime.projects.service import validate_user_and_project, validate_user_and_tag
from codetime.schemas import DailyTotalRow, LeaderboardRow, ProjectStatRow, StatRow, TimelineRow, TimeRange
from codetime.storage.contract import DateRange, Db


async def generate_statistics(
    db: Db,
    token: str,
    cutoff: int,
    tag: str | None,
    time_range: DateRange,
) -> list[StatRow]:
    if tag is None:
        username = await get_user_by_token(db, token)
    else:
        username = await validate_user_and_tag(db, token, tag)
    return await db.get_total_stats(username, time_range, tag, cutoff)


async def get_timeline(db: Db, token: str, cutoff: int, time_range: DateRange) -> list[TimelineRow]:
    username = await get_user_by_token(db, token)
    return await db.get_timeline_stats(username, time_range, cutoff)


async def gen_project_statistics(
    db: Db,
    token: str,
    project: str,
    cutoff: int,
    time_range: DateRange,
) -> list[ProjectStatRow]:
    username = await validate_user_and_project(db, token, project)
    return await db.get_project_stats(username, project, time_range, cutoff)


async def gen_tag_statistics(
    db: Db,
    token: str,
    tag: str,
    cutoff: int,
    time_range: DateRange,
) -> list[ProjectStatRow]:
    username = await validate_user_and_tag(db, token, tag)
    return await db.get_tag_stats(username, tag, time_range, cutoff)


async def get_user_projects(db: Db, token: str, start: datetime, end: datetime) -> list[str]:
    username = await get_user_by_token(db, token)
    return await db.get_all_projects(username, start, end)


async def get_user_tags(db: Db, token: str) -> list[str]:
    username = await get_user_by_token(db, token)
    return await db.get_all_tags(username)


async def get_leaderboards(db: Db, time_range: DateRange, cutoff: int) -> list[LeaderboardRow]:
    return await db.get_leaderboards(time_range, cutoff)


async def get_total_time_today(db: Db, token: str) -> int:
    username = await get_user_by_token(db, token)
    return await db.get_total_time_today(username)


async def get_total_time_between(db: Db, ranges: list[TimeRange]) -> list[int]:
    """Total seconds per range, in the same order as ``ranges``.

    Storage yields the totals last range first, so the result is reversed.
    """
    totals = await db.get_total_time_between(ranges)
    return list(reversed(totals))


def split_by_day(start: datetime, end: datetime) -> list[DateRange]:
    """Cut ``[start, end)`` at every UTC midnight."""
    windows = []
    cursor = start.astimezone(timezone.utc)
    end = end.astimezone(timezone.utc)
    while cursor < end:
        midnight = cursor.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
        windows.append((cursor, min(midnight, end)))
        cursor = midnight
    return windows


async def get_daily_project_totals(
    db: Db,
    token: str,
    project: str,
    time_range: DateRange,
) -> list[DailyTotalRow]:
    """Seconds spent on an owned project for each UTC day of the window."""
    username = await validate_user_and_project(db, token, project)
    windows = split_by_day(*time_range)
    ranges = [TimeRange(username=username, project=project, start=start, end=end) for start, end in windows]
    totals = await get_total_time_between(db, ranges)
    return [
        DailyTotalRow(start=start, end=end, total_seconds=total)
        for (start, end), total in zip(windows, totals)
    ]
