"""Heartbeat ingestion endpoints (WakaTime compatible)."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Header

from codetime.dependencies import get_api_token, get_db
from codetime.heartbeats.service import process_heartbeat_request
from codetime.schemas import HeartbeatPayload
from codetime.storage.contract import Db

router = APIRouter(prefix="/api/v1/users/current", tags=["Heartbeats"])


def with_request_headers(
    heartbeats: list[HeartbeatPayload],
    user_agent: str | None,
    machine: str | None,
) -> list[HeartbeatPayload]:
    """Fill ``user_agent`` and ``machine`` from the request headers where the payload left them out."""
    filled = []
    for beat in heartbeats:
        update: dict[str, Any] = {}
        if not beat.user_agent and user_agent:
            update["user_agent"] = user_agent
        if machine:
            update["machine"] = machine
        filled.append(beat.model_copy(update=update) if update else beat)
    return filled


@router.post("/heartbeats", status_code=201)
async def post_heartbeat(
    body: HeartbeatPayload,
    token: str = Depends(get_api_token),  # noqa: B008
    user_agent: str | None = Header(default=None),
    x_machine_name: str | None = Header(default=None),
    db: Db = Depends(get_db),  # noqa: B008
) -> dict[str, Any]:
    """Store one heartbeat."""
    beats = with_request_headers([body], user_agent, x_machine_name)
    ids = await process_heartbeat_request(db, token, beats)
    return {"data": {"id": ids[0]}}


@router.post("/heartbeats.bulk", status_code=201)
async def post_heartbeats_bulk(
    body: list[HeartbeatPayload],
    token: str = Depends(get_api_token),  # noqa: B008
    user_agent: str | None = Header(default=None),
    x_machine_name: str | None = Header(default=None),
    db: Db = Depends(get_db),  # noqa: B008
) -> dict[str, Any]:
    """Store a batch of heartbeats, answering one entry per stored heartbeat."""
    beats = with_request_headers(body, user_agent, x_machine_name)
    ids = await process_heartbeat_request(db, token, beats)
    return {"responses": [[{"data": {"id": hb_id}}, 201] for hb_id in ids]}
