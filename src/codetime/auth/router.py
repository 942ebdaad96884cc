"""Authentication router: sessions, registration and API tokens under /auth."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from codetime.auth import service
from codetime.auth.schemas import (
    ApiTokenResponse,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
)
from codetime.config import get_settings
from codetime.dependencies import get_api_token, get_db
from codetime.schemas import StoredApiToken, TokenData, TokenMetadata
from codetime.storage.contract import Db

logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _refresh_cookie(request: Request) -> str | None:
    return request.cookies.get(get_settings().refresh_cookie_name)


def _session_response(response: Response, token_data: TokenData) -> TokenResponse:
    """Set the refresh cookie and build the access token body."""
    settings = get_settings()
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=token_data.refresh_token,
        max_age=settings.refresh_token_expire_hours * 3600,
        path="/auth",
        httponly=True,
        samesite="strict",
        secure=settings.environment == "production",
    )
    return TokenResponse(
        token=token_data.token,
        token_owner=token_data.owner,
        token_expiry=datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes),
    )


# ---------------------------------------------------------------------------
# Web sessions
# ---------------------------------------------------------------------------


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    response: Response,
    db: Db = Depends(get_db),  # noqa: B008
) -> TokenResponse:
    """Exchange username + password for an access token and a refresh cookie."""
    settings = get_settings()
    token_data = await service.create_auth_tokens(db, body.username, body.password, settings.refresh_token_expire_hours)
    logger.info("user_logged_in", username=token_data.owner)
    return _session_response(response, token_data)


@router.post("/refresh_token", response_model=TokenResponse)
async def refresh_token(
    request: Request,
    response: Response,
    db: Db = Depends(get_db),  # noqa: B008
) -> TokenResponse:
    settings = get_settings()
    token_data = await service.refresh_auth_tokens(db, _refresh_cookie(request), settings.refresh_token_expire_hours)
    return _session_response(response, token_data)


@router.post("/logout", status_code=204)
async def logout(
    request: Request,
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> Response:
    """Delete the session behind the access token and the refresh cookie."""
    await service.clear_tokens(db, token, _refresh_cookie(request))
    response = Response(status_code=204)
    response.delete_cookie(get_settings().refresh_cookie_name, path="/auth")
    return response


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    db: Db = Depends(get_db),  # noqa: B008
) -> TokenResponse:
    settings = get_settings()
    if not settings.enable_registration:
        raise HTTPException(status_code=403, detail="Registration is disabled")
    token_data = await service.register_user(db, body.username, body.password, settings.refresh_token_expire_hours)
    return _session_response(response, token_data)


# ---------------------------------------------------------------------------
# API tokens
# ---------------------------------------------------------------------------


@router.post("/create_api_token", response_model=ApiTokenResponse)
async def create_api_token(
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> ApiTokenResponse:
    """Issue a new API token; its raw value is only ever shown here."""
    return ApiTokenResponse(api_token=await service.create_new_api_token(db, token))


@router.get("/tokens", response_model=list[StoredApiToken])
async def list_tokens(
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> list[StoredApiToken]:
    return await service.get_api_tokens(db, token)


@router.delete("/token/{token_id}", status_code=204)
async def delete_token(
    token_id: UUID,
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> Response:
    await service.delete_api_token(db, token, token_id)
    return Response(status_code=204)


@router.patch("/token", status_code=204)
async def update_token(
    body: TokenMetadata,
    token: str = Depends(get_api_token),  # noqa: B008
    db: Db = Depends(get_db),  # noqa: B008
) -> Response:
    """Rename one of the caller's API tokens."""
    await service.update_token_metadata(db, token, body)
    return Response(status_code=204)
