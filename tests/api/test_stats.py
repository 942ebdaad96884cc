"""Statistics, project and tag endpoint tests."""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from codetime.storage.memory import InMemoryDb
from tests.helpers import NOW, beat

T0 = NOW - timedelta(hours=2)
WINDOW = {"start": (NOW - timedelta(days=1)).isoformat(), "end": NOW.isoformat()}


@pytest.fixture
async def activity(db: InMemoryDb, alice_token: str) -> None:
    await db.save_heartbeats(
        [
            beat(T0, sender="alice", entity="a.py"),
            beat(T0 + timedelta(minutes=5), sender="alice", entity="a.py"),
            beat(T0 + timedelta(minutes=6), sender="alice", entity="b.py"),
        ]
    )


@pytest.mark.usefixtures("activity")
class TestStats:
    async def test_stats(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/stats", params=WINDOW)
        assert response.status_code == 200
        rows = response.json()
        assert [(r["entity"], r["total_seconds"]) for r in rows] == [("a.py", 360), ("b.py", 0)]

    async def test_limit(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/stats", params={**WINDOW, "limit": 1})
        assert len(response.json()) == 1

    async def test_invalid_limit(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/stats", params={**WINDOW, "limit": 0})
        assert response.status_code == 422

    async def test_start_after_end(self, authed_client: AsyncClient) -> None:
        params = {"start": NOW.isoformat(), "end": (NOW - timedelta(days=1)).isoformat()}
        response = await authed_client.get("/api/v1/users/current/stats", params=params)
        assert response.status_code == 400

    async def test_timeline(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/timeline", params=WINDOW)
        assert response.status_code == 200
        [row] = response.json()
        assert row["project"] == "codetime"
        assert row["language"] == "Python"

    async def test_project_stats(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/projects/codetime", params=WINDOW)
        assert response.status_code == 200
        assert sum(r["total_seconds"] for r in response.json()) == 360

    async def test_daily_project_totals(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/projects/codetime/daily", params=WINDOW)
        assert response.status_code == 200
        assert [r["total_seconds"] for r in response.json()] == [0, 360]

    async def test_daily_window_too_long(self, authed_client: AsyncClient) -> None:
        params = {"start": (NOW - timedelta(days=400)).isoformat(), "end": NOW.isoformat()}
        response = await authed_client.get("/api/v1/users/current/projects/codetime/daily", params=params)
        assert response.status_code == 400

    async def test_leaderboards(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/leaderboards", params=WINDOW)
        assert response.json() == [{"sender": "alice", "language": "Python", "total_seconds": 360}]

    async def test_leaderboards_require_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/leaderboards", params=WINDOW)
        assert response.status_code == 401

    async def test_projects_listing(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/projects", params=WINDOW)
        assert response.json() == {"projects": ["codetime"]}

    async def test_today(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/status_bar/today")
        assert response.json() == {"data": {"grand_total": {"total_seconds": 360}}}


@pytest.mark.usefixtures("activity")
class TestTags:
    async def test_set_and_get(self, authed_client: AsyncClient) -> None:
        response = await authed_client.post(
            "/api/v1/users/current/projects/codetime/tags", json={"tags": ["work", "oss"]}
        )
        assert response.status_code == 200
        assert response.json() == {"count": 2}

        response = await authed_client.get("/api/v1/users/current/projects/codetime/tags")
        assert response.json() == {"tags": ["oss", "work"]}

        response = await authed_client.get("/api/v1/users/current/tags")
        assert response.json() == {"tags": ["oss", "work"]}

    async def test_tag_stats(self, authed_client: AsyncClient) -> None:
        await authed_client.post("/api/v1/users/current/projects/codetime/tags", json={"tags": ["work"]})
        response = await authed_client.get("/api/v1/users/current/tags/work", params=WINDOW)
        assert sum(r["total_seconds"] for r in response.json()) == 360

        response = await authed_client.get("/api/v1/users/current/stats", params={**WINDOW, "tag": "work"})
        assert len(response.json()) == 2

    async def test_tag_name_too_long(self, authed_client: AsyncClient, db: InMemoryDb) -> None:
        response = await authed_client.post(
            "/api/v1/users/current/projects/codetime/tags", json={"tags": ["t" * 65]}
        )
        assert response.status_code == 422
        assert db.tags == {}

    async def test_foreign_project(self, authed_client: AsyncClient, db: InMemoryDb) -> None:
        await db.insert_user("bob", "hash")
        await db.save_heartbeats([beat(T0, sender="bob", project="bobs")])
        response = await authed_client.post("/api/v1/users/current/projects/bobs/tags", json={"tags": ["x"]})
        assert response.status_code == 403
        assert response.json() == {"detail": "Project does not belong to the user"}
        assert db.tags == {}


class TestForeignResources:
    @pytest.fixture(autouse=True)
    async def bob(self, db: InMemoryDb) -> None:
        await db.insert_user("bob", "hash")
        await db.save_heartbeats([beat(T0, sender="bob", project="bobs")])
        await db.set_tags("bob", "bobs", ["bobtag"])

    async def test_project_stats(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/projects/bobs", params=WINDOW)
        assert response.status_code == 403
        assert response.json() == {"detail": "Project does not belong to the user"}

    async def test_project_tags(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/projects/bobs/tags")
        assert response.status_code == 403

    async def test_tag_stats(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/tags/bobtag", params=WINDOW)
        assert response.status_code == 403
        assert response.json() == {"detail": "Tag does not belong to the user"}

    async def test_stats_filtered_by_foreign_tag(self, authed_client: AsyncClient) -> None:
        response = await authed_client.get("/api/v1/users/current/stats", params={**WINDOW, "tag": "bobtag"})
        assert response.status_code == 403
