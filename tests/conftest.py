"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from codetime.auth.password import hash_password
from codetime.auth.tokens import to_base64
from codetime.main import create_app
from codetime.storage.memory import InMemoryDb
from tests.helpers import FixedClock


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def db(clock: FixedClock) -> InMemoryDb:
    return InMemoryDb(clock=clock)


@pytest_asyncio.fixture
async def alice_token(db: InMemoryDb) -> str:
    """API token of a registered user 'alice', in the form clients send it."""
    await db.insert_user("alice", hash_password("s3cret"))
    return to_base64(await db.create_api_token("alice"))


@pytest.fixture
def badge_transport() -> httpx.MockTransport:
    """Stands in for shields.io: echoes the query back inside an SVG."""

    def handler(request: httpx.Request) -> httpx.Response:
        label = request.url.params["label"]
        message = request.url.params["message"]
        return httpx.Response(200, content=f"<svg>{label}: {message}</svg>".encode())

    return httpx.MockTransport(handler)


@pytest_asyncio.fixture
async def client(db: InMemoryDb, badge_transport: httpx.MockTransport) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against an app backed by the in-memory store."""
    async with httpx.AsyncClient(transport=badge_transport) as badge_client:
        app = create_app(db=db, http_client=badge_client)
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, alice_token: str) -> AsyncClient:
    """Client sending alice's API token the way editor plugins do."""
    client.headers["Authorization"] = f"Basic {alice_token}"
    return client
