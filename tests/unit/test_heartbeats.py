"""Tests for heartbeat ingestion."""

from datetime import timedelta

import pytest

from codetime.auth.tokens import to_base64
from codetime.errors import UnknownApiToken
from codetime.heartbeats.service import import_heartbeats, process_heartbeat_request, update_heartbeats
from codetime.storage.memory import InMemoryDb
from tests.helpers import NOW, beat


class TestUpdateHeartbeats:
    def test_overwrites_client_supplied_identity(self):
        spoofed = beat(NOW, sender="mallory", editor="ed", plugin="fake", platform="TempleOS")
        [updated] = update_heartbeats([spoofed], "alice")
        assert updated.sender == "alice"
        assert updated.editor == "vscode"
        assert updated.plugin == "vscode-wakatime"
        assert updated.platform == "Linux"

    def test_unparseable_user_agent_clears_fields(self):
        spoofed = beat(NOW, user_agent="nonsense", editor="ed", plugin="fake", platform="TempleOS")
        [updated] = update_heartbeats([spoofed], "alice")
        assert (updated.editor, updated.plugin, updated.platform) == (None, None, None)

    def test_keeps_other_fields(self):
        original = beat(NOW, branch="main", lines=42)
        [updated] = update_heartbeats([original], "alice")
        assert updated.branch == "main"
        assert updated.lines == 42
        assert updated.time == original.time


class TestProcessHeartbeatRequest:
    async def test_stores_batch(self, db: InMemoryDb, alice_token: str):
        beats = [beat(NOW), beat(NOW + timedelta(seconds=30))]
        ids = await process_heartbeat_request(db, alice_token, beats)
        assert ids == [1, 2]
        assert all(stored.payload.sender == "alice" for stored in db.heartbeats)

    async def test_duplicate_project_created_once(self, db: InMemoryDb, alice_token: str):
        beats = [beat(NOW, project="p"), beat(NOW, project="p"), beat(NOW, project="q")]
        await process_heartbeat_request(db, alice_token, beats)
        assert db.projects == {("alice", "p"), ("alice", "q")}

    async def test_unknown_token_persists_nothing(self, db: InMemoryDb):
        with pytest.raises(UnknownApiToken):
            await process_heartbeat_request(db, to_base64("nope"), [beat(NOW)])
        assert db.heartbeats == []
        assert db.projects == set()

    async def test_records_token_usage(self, db: InMemoryDb, alice_token: str):
        await process_heartbeat_request(db, alice_token, [beat(NOW)])
        [record] = db.api_tokens.values()
        assert record.last_usage == NOW

    async def test_empty_batch(self, db: InMemoryDb, alice_token: str):
        assert await process_heartbeat_request(db, alice_token, []) == []


async def test_import_heartbeats_sets_sender(db: InMemoryDb):
    await db.insert_user("bob", "hash")
    ids = await import_heartbeats(db, "bob", [beat(NOW, sender="alice")])
    assert ids == [1]
    assert db.heartbeats[0].payload.sender == "bob"
    assert ("bob", "codetime") in db.projects
