"""Queued bulk heartbeat imports.

An import is tracked as a job whose payload names the importing user, so at
most one import per user is queued or running at a time. Failed jobs stay
around until the user clears them or queues a new import.
"""

from __future__ import annotations

from uuid import UUID

import structlog

from codetime.auth.service import get_user_by_token
from codetime.errors import CodetimeError, ImportInProgress
from codetime.heartbeats.service import import_heartbeats
from codetime.schemas import HeartbeatPayload
from codetime.storage.contract import Db, JobPayload

logger = structlog.get_logger()

JOB_QUEUED = "queued"
JOB_RUNNING = "running"
JOB_DONE = "done"
JOB_FAILED = "failed"

_ACTIVE = frozenset({JOB_QUEUED, JOB_RUNNING})


def import_job_payload(username: str) -> JobPayload:
    return {"kind": "heartbeat_import", "username": username}


async def queue_import(db: Db, token: str) -> tuple[UUID, str]:
    """Register a new import job for the caller.

    Stale failed jobs of the caller are removed first.

    Returns:
        The job id and the resolved username.

    Raises:
        UnknownApiToken: If the token is unknown.
        ImportInProgress: If an earlier import is still queued or running.
    """
    username = await get_user_by_token(db, token)
    payload = import_job_payload(username)

    status = await db.get_job_status(payload)
    if status in _ACTIVE:
        raise ImportInProgress(username)
    if status == JOB_FAILED:
        removed = await db.delete_failed_jobs(payload)
        logger.info("failed_import_jobs_deleted", username=username, count=removed)

    job_id = await db.create_job(payload)
    logger.info("import_job_queued", username=username, job_id=str(job_id))
    return job_id, username


async def run_import(db: Db, job_id: UUID, username: str, heartbeats: list[HeartbeatPayload]) -> None:
    """Store the batch and record the outcome on the job."""
    await db.set_job_status(job_id, JOB_RUNNING)
    try:
        await import_heartbeats(db, username, heartbeats)
    except CodetimeError as e:
        logger.error("import_job_failed", username=username, job_id=str(job_id), error=str(e))
        await db.set_job_status(job_id, JOB_FAILED)
        return
    await db.set_job_status(job_id, JOB_DONE)
    logger.info("import_job_done", username=username, job_id=str(job_id), count=len(heartbeats))


async def get_import_status(db: Db, token: str) -> str | None:
    username = await get_user_by_token(db, token)
    return await db.get_job_status(import_job_payload(username))


async def clear_failed_imports(db: Db, token: str) -> int:
    username = await get_user_by_token(db, token)
    return await db.delete_failed_jobs(import_job_payload(username))
