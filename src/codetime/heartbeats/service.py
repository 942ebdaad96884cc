"""Heartbeat ingestion."""

from __future__ import annotations

import structlog

from codetime.errors import UnknownApiToken
from codetime.heartbeats.user_agent import parse_user_agent
from codetime.schemas import HeartbeatPayload
from codetime.storage.contract import Db

logger = structlog.get_logger()


def update_heartbeats(heartbeats: list[HeartbeatPayload], username: str) -> list[HeartbeatPayload]:
    """Stamp every heartbeat with its sender and user-agent derived fields.

    Client-supplied ``sender``, ``editor``, ``plugin`` and ``platform`` values
    are always discarded.
    """
    updated = []
    for beat in heartbeats:
        info = parse_user_agent(beat.user_agent)
        updated.append(
            beat.model_copy(
                update={
                    "sender": username,
                    "editor": info.editor,
                    "plugin": info.plugin,
                    "platform": info.platform,
                }
            )
        )
    return updated


async def process_heartbeat_request(db: Db, token: str, heartbeats: list[HeartbeatPayload]) -> list[int]:
    """Resolve the API token, record its usage and store the batch.

    Raises:
        UnknownApiToken: If the token does not belong to any user. Nothing is stored.
    """
    username = await db.get_user(token)
    if username is None:
        raise UnknownApiToken

    await db.touch_api_token_usage(token)
    ids = await db.save_heartbeats(update_heartbeats(heartbeats, username))
    logger.info("heartbeats_saved", username=username, count=len(ids))
    return ids


async def import_heartbeats(db: Db, username: str, heartbeats: list[HeartbeatPayload]) -> list[int]:
    """Store a batch on behalf of an already known user (bulk import)."""
    ids = await db.save_heartbeats(update_heartbeats(heartbeats, username))
    logger.info("heartbeats_imported", username=username, count=len(ids))
    return ids
