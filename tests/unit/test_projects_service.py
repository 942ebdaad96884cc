"""Tests for project ownership gating and tagging."""

import pytest

from codetime.errors import InvalidRelation, InvalidTagRelation, UnknownApiToken
from codetime.heartbeats.service import process_heartbeat_request
from codetime.projects import service
from codetime.storage.memory import InMemoryDb
from tests.helpers import NOW, beat


@pytest.fixture
async def alice_project(db: InMemoryDb, alice_token: str) -> str:
    await process_heartbeat_request(db, alice_token, [beat(NOW, project="codetime")])
    return "codetime"


class TestSetProjectTags:
    async def test_replaces_tag_set(self, db: InMemoryDb, alice_token: str, alice_project: str):
        assert await service.set_project_tags(db, alice_token, alice_project, ["a", "b"]) == 2
        assert await service.set_project_tags(db, alice_token, alice_project, ["b", "c"]) == 2

        assert await service.get_project_tags(db, alice_token, alice_project) == ["b", "c"]
        # Tags survive losing their last association.
        assert await db.get_all_tags("alice") == ["a", "b", "c"]

    async def test_duplicate_tags_collapse(self, db: InMemoryDb, alice_token: str, alice_project: str):
        assert await service.set_project_tags(db, alice_token, alice_project, ["x", "x", "y"]) == 2
        assert await service.get_project_tags(db, alice_token, alice_project) == ["x", "y"]

    async def test_empty_list_clears(self, db: InMemoryDb, alice_token: str, alice_project: str):
        await service.set_project_tags(db, alice_token, alice_project, ["a"])
        assert await service.set_project_tags(db, alice_token, alice_project, []) == 0
        assert await service.get_project_tags(db, alice_token, alice_project) == []

    async def test_foreign_project_has_no_side_effects(self, db: InMemoryDb, alice_token: str):
        await db.insert_user("bob", "hash")
        await db.save_heartbeats([beat(NOW, project="secret", sender="bob")])

        with pytest.raises(InvalidRelation):
            await service.set_project_tags(db, alice_token, "secret", ["stolen"])
        assert db.tags == {}
        assert db.project_tags == set()

    async def test_unknown_project(self, db: InMemoryDb, alice_token: str):
        with pytest.raises(InvalidRelation):
            await service.get_project_tags(db, alice_token, "missing")

    async def test_unknown_token(self, db: InMemoryDb, alice_project: str):
        with pytest.raises(UnknownApiToken):
            await service.set_project_tags(db, "bogus", alice_project, ["a"])


class TestValidateUserAndTag:
    async def test_owned_tag(self, db: InMemoryDb, alice_token: str, alice_project: str):
        await service.set_project_tags(db, alice_token, alice_project, ["work"])
        assert await service.validate_user_and_tag(db, alice_token, "work") == "alice"

    async def test_unowned_tag(self, db: InMemoryDb, alice_token: str):
        with pytest.raises(InvalidTagRelation):
            await service.validate_user_and_tag(db, alice_token, "work")
