"""Heartbeat import endpoints."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Header

from codetime.dependencies import get_api_token, get_db
from codetime.heartbeats.router import with_request_headers
from codetime.imports import service
from codetime.imports.schemas import (
    FailedImportsDeletedResponse,
    ImportQueuedResponse,
    ImportRequest,
    ImportStatusResponse,
)
from codetime.storage.contract import Db

router = APIRouter(prefix="/api/v1/users/current/imports", tags=["Imports"])


@router.post("", response_model=ImportQueuedResponse, status_code=202)
async def queue_import(
    body: ImportRequest,
    background_tasks: BackgroundTasks,
    token: str = Depends(get_api_token),  # noqa: B008
    user_agent: str | None = Header(default=None),
    x_machine_name: str | None = Header(default=None),
    db: Db = Depends(get_db),  # noqa: B008
) -> ImportQueuedResponse:
    """Queue the batch; it is stored after the response has been sent."""
    job_id, username = await service.queue_import(db, token)
    beats = with_request_headers(body.heartbeats, user_agent, x_machine_name)
    background_tasks.add_task(service.run_import, db, job_id, username, beats)
    return ImportQueuedResponse(job_id=job_id, status=service.JOB_QUEUED)


@router.get("", response_model=ImportStatusResponse)
async def import_status(
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> ImportStatusResponse:
    return ImportStatusResponse(status=await service.get_import_status(db, token))


@router.delete("/failed", response_model=FailedImportsDeletedResponse)
async def delete_failed_imports(
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> FailedImportsDeletedResponse:
    return FailedImportsDeletedResponse(deleted=await service.clear_failed_imports(db, token))
