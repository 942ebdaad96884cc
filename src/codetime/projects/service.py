"""Project and tag ownership gating."""

from __future__ import annotations

import structlog

from codetime.auth.service import get_user_by_token
from codetime.errors import InvalidRelation, InvalidTagRelation
from codetime.storage.contract import Db

logger = structlog.get_logger()


async def validate_user_and_project(db: Db, token: str, project: str) -> str:
    """Resolve the caller and require that they own ``project``.

    Raises:
        UnknownApiToken: If the token is unknown.
        InvalidRelation: If the project belongs to someone else or does not exist.
    """
    username = await get_user_by_token(db, token)
    if not await db.check_project_owner(username, project):
        raise InvalidRelation(username, project)
    return username


async def validate_user_and_tag(db: Db, token: str, tag: str) -> str:
    """Resolve the caller and require that they own ``tag``.

    Raises:
        UnknownApiToken: If the token is unknown.
        InvalidTagRelation: If no tag of that name belongs to the caller.
    """
    username = await get_user_by_token(db, token)
    if not await db.check_tag_owner(username, tag):
        raise InvalidTagRelation(username, tag)
    return username


async def set_project_tags(db: Db, token: str, project: str, tags: list[str]) -> int:
    """Replace every tag of an owned project."""
    username = await validate_user_and_project(db, token, project)
    written = await db.set_tags(username, project, tags)
    logger.info("project_tags_set", username=username, project=project, count=written)
    return written


async def get_project_tags(db: Db, token: str, project: str) -> list[str]:
    username = await validate_user_and_project(db, token, project)
    return await db.get_tags(username, project)
