"""Request/response schemas for heartbeat import endpoints."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field

from codetime.schemas import HeartbeatPayload


class ImportRequest(BaseModel):
    """Heartbeats exported from another tracker, stored on behalf of the caller."""

    heartbeats: list[HeartbeatPayload] = Field(..., min_length=1)


class ImportQueuedResponse(BaseModel):
    job_id: UUID
    status: str


class ImportStatusResponse(BaseModel):
    status: str | None


class FailedImportsDeletedResponse(BaseModel):
    deleted: int
