"""Shareable activity badges.

A badge link maps a random UUID to a (user, project) pair so the badge can be
embedded publicly without exposing any token. The image itself is rendered by
a shields.io compatible service; this module only supplies the label and the
formatted duration and hands back the bytes untouched.
"""

from __future__ import annotations

from uuid import UUID

import httpx
import structlog

from codetime.projects.service import validate_user_and_project
from codetime.schemas import BadgeRow
from codetime.storage.contract import Db

logger = structlog.get_logger()

_UNITS = (
    ("wk", 7 * 24 * 3600),
    ("d", 24 * 3600),
    ("hr", 3600),
    ("min", 60),
    ("sec", 1),
)


class BadgeNotFound(LookupError):
    """No badge link exists for the given id."""


def compound_duration(seconds: int | None) -> str:
    """Format seconds as e.g. ``'1 wk, 2 d, 3 hr, 4 min, 5 sec'``; zero parts are skipped."""
    remaining = seconds or 0
    parts = []
    for unit, size in _UNITS:
        amount, remaining = divmod(remaining, size)
        if amount:
            parts.append(f"{amount} {unit}")
    return ", ".join(parts) if parts else "0 sec"


async def mk_badge_link(db: Db, project: str, token: str) -> UUID:
    """Return the stable badge id for an owned project, creating it on first use."""
    username = await validate_user_and_project(db, token, project)
    return await db.create_badge_link(username, project)


async def get_badge_info(db: Db, link_id: UUID) -> BadgeRow:
    row = await db.get_badge_link_info(link_id)
    if row is None:
        raise BadgeNotFound(str(link_id))
    return row


async def render_badge(
    db: Db,
    client: httpx.AsyncClient,
    shields_io_url: str,
    link_id: UUID,
    days: int,
) -> bytes:
    """Fetch the SVG badge showing the activity behind ``link_id`` over ``days`` days.

    Raises:
        BadgeNotFound: If the link id is unknown.
        httpx.HTTPError: If the renderer cannot be reached or answers with an error.
    """
    badge = await get_badge_info(db, link_id)
    activity = await db.get_total_activity_time(badge.username, days, badge.project)

    response = await client.get(
        f"{shields_io_url.rstrip('/')}/static/v1",
        params={
            "label": badge.project,
            "message": compound_duration(activity),
            "color": "blue",
        },
    )
    response.raise_for_status()
    logger.debug("badge_rendered", link_id=str(link_id), project=badge.project)
    return response.content
