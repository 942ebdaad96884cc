"""Badge endpoint tests."""

from datetime import timedelta
from uuid import uuid4

import httpx
from httpx import AsyncClient

from codetime.main import create_app
from codetime.storage.memory import InMemoryDb
from tests.helpers import NOW, beat


async def test_badge_link_and_svg(authed_client: AsyncClient, db: InMemoryDb) -> None:
    await db.save_heartbeats(
        [
            beat(NOW - timedelta(hours=1), sender="alice"),
            beat(NOW - timedelta(hours=1) + timedelta(minutes=1), sender="alice"),
        ]
    )
    response = await authed_client.get("/badge/link/codetime")
    assert response.status_code == 200
    badge_url = response.json()["badge_url"]
    assert badge_url.startswith("http://localhost:8080/badge/svg/")

    again = await authed_client.get("/badge/link/codetime")
    assert again.json()["badge_url"] == badge_url

    link_id = badge_url.rsplit("/", 1)[1]
    svg = await authed_client.get(f"/badge/svg/{link_id}", params={"days": 30})
    assert svg.status_code == 200
    assert svg.headers["content-type"] == "image/svg+xml"
    assert svg.text == "<svg>codetime: 1 min</svg>"


async def test_unknown_badge(client: AsyncClient) -> None:
    response = await client.get(f"/badge/svg/{uuid4()}")
    assert response.status_code == 404


async def test_badge_link_requires_token(client: AsyncClient) -> None:
    response = await client.get("/badge/link/codetime")
    assert response.status_code == 401


async def test_renderer_unavailable(db: InMemoryDb, alice_token: str) -> None:
    link_id = await db.create_badge_link("alice", "codetime")

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as badge_client:
        app = create_app(db=db, http_client=badge_client)
        async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get(f"/badge/svg/{link_id}")
    assert response.status_code == 502


async def test_badge_link_for_foreign_project(authed_client: AsyncClient, db: InMemoryDb) -> None:
    await db.insert_user("bob", "hash")
    await db.save_heartbeats([beat(NOW - timedelta(hours=1), sender="bob", project="bobs")])

    response = await authed_client.get("/badge/link/bobs")
    assert response.status_code == 403
    assert db.badges == {}
