"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

import httpx
from fastapi import Header, HTTPException, Request

from codetime.storage.contract import Db

_SCHEMES = ("basic", "bearer")


def get_db(request: Request) -> Db:
    """The storage backend created by the application lifespan."""
    return request.app.state.db


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_api_token(authorization: str | None = Header(default=None)) -> str:
    """
    Extract the token from ``Authorization: Basic <token>`` or ``Bearer <token>``.

    Editor plugins send their API token with the Basic scheme, the dashboard
    sends its access token with Bearer. The credential is looked up as given.
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    scheme, _, credential = authorization.partition(" ")
    credential = credential.strip()
    if scheme.lower() not in _SCHEMES or not credential:
        raise HTTPException(status_code=401, detail="Malformed authorization header")
    return credential
