"""Badge endpoints: link creation and SVG rendering."""

from __future__ import annotations

from uuid import UUID

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel

from codetime.badges.service import BadgeNotFound, mk_badge_link, render_badge
from codetime.config import get_settings
from codetime.dependencies import get_api_token, get_db, get_http_client
from codetime.storage.contract import Db

logger = structlog.get_logger()

router = APIRouter(prefix="/badge", tags=["Badges"])


class BadgeResponse(BaseModel):
    badge_url: str


@router.get("/link/{project}", response_model=BadgeResponse)
async def get_badge_link(
    project: str,
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> BadgeResponse:
    """Public URL of the project's badge; the same URL is returned on every call."""
    link_id = await mk_badge_link(db, project, token)
    return BadgeResponse(badge_url=f"{get_settings().badge_url.rstrip('/')}/badge/svg/{link_id}")


@router.get("/svg/{link_id}")
async def get_badge_svg(
    link_id: UUID,
    days: int | None = Query(default=None, ge=1),
    db: Db = Depends(get_db),  # noqa: B008
    client: httpx.AsyncClient = Depends(get_http_client),  # noqa: B008
) -> Response:
    settings = get_settings()
    try:
        svg = await render_badge(db, client, settings.shields_io_url, link_id, days or settings.badge_default_days)
    except BadgeNotFound as e:
        raise HTTPException(status_code=404, detail="Badge not found") from e
    except httpx.HTTPError as e:
        logger.warning("badge_render_failed", link_id=str(link_id), error=str(e))
        raise HTTPException(status_code=502, detail="Badge renderer unavailable") from e
    return Response(content=svg, media_type="image/svg+xml")
