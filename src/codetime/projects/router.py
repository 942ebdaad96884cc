"""Project and tag endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from codetime.dependencies import get_api_token, get_db
from codetime.projects import service
from codetime.stats.router import time_range
from codetime.stats.service import get_user_projects, get_user_tags
from codetime.storage.contract import DateRange, Db

router = APIRouter(prefix="/api/v1/users/current", tags=["Projects"])


TagName = Annotated[str, Field(min_length=1, max_length=64)]


class TagsRequest(BaseModel):
    tags: list[TagName] = Field(default_factory=list)


class TagsResponse(BaseModel):
    tags: list[str]


class ProjectsResponse(BaseModel):
    projects: list[str]


class TagsSetResponse(BaseModel):
    count: int


@router.get("/projects", response_model=ProjectsResponse)
async def list_projects(
    window: DateRange = Depends(time_range),  # noqa: B008
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> ProjectsResponse:
    """Projects with activity inside the window."""
    start, end = window
    return ProjectsResponse(projects=await get_user_projects(db, token, start, end))


@router.get("/tags", response_model=TagsResponse)
async def list_tags(
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> TagsResponse:
    return TagsResponse(tags=await get_user_tags(db, token))


@router.get("/projects/{project}/tags", response_model=TagsResponse)
async def get_project_tags(
    project: str,
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> TagsResponse:
    return TagsResponse(tags=await service.get_project_tags(db, token, project))


@router.post("/projects/{project}/tags", response_model=TagsSetResponse)
async def set_project_tags(
    project: str,
    body: TagsRequest,
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> TagsSetResponse:
    """Replace the project's tags with the given set."""
    return TagsSetResponse(count=await service.set_project_tags(db, token, project, body.tags))
