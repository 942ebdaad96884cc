"""Tests for statistics, timelines and leaderboards over the in-memory store."""

from datetime import timedelta

import pytest

from codetime.errors import InvalidRelation, InvalidTagRelation, UnknownApiToken
from codetime.schemas import TimeRange
from codetime.stats import service
from codetime.storage.memory import InMemoryDb
from tests.helpers import NOW, beat

WINDOW = (NOW - timedelta(days=1), NOW)
T0 = NOW - timedelta(hours=3)


@pytest.fixture
async def session(db: InMemoryDb, alice_token: str) -> InMemoryDb:
    """Two minutes on a.py, an idle gap, then a lone heartbeat on b.py."""
    await db.save_heartbeats(
        [
            beat(T0, sender="alice", entity="a.py"),
            beat(T0 + timedelta(minutes=1), sender="alice", entity="a.py"),
            beat(T0 + timedelta(minutes=2), sender="alice", entity="a.py"),
            beat(NOW - timedelta(hours=1), sender="alice", entity="b.py"),
        ]
    )
    return db


class TestGenerateStatistics:
    async def test_idle_gaps_are_not_counted(self, session: InMemoryDb, alice_token: str):
        rows = await service.generate_statistics(session, alice_token, 100, None, WINDOW)
        assert [(r.entity, r.total_seconds) for r in rows] == [("a.py", 120), ("b.py", 0)]
        assert rows[0].pct == 1.0
        assert rows[0].daily_total_seconds == 120

    async def test_cutoff_limits_rows(self, session: InMemoryDb, alice_token: str):
        rows = await service.generate_statistics(session, alice_token, 1, None, WINDOW)
        assert [r.entity for r in rows] == ["a.py"]

    async def test_tag_filter(self, session: InMemoryDb, alice_token: str):
        with pytest.raises(InvalidTagRelation):
            await service.generate_statistics(session, alice_token, 100, "work", WINDOW)
        await session.set_tags("alice", "codetime", ["work"])
        rows = await service.generate_statistics(session, alice_token, 100, "work", WINDOW)
        assert {r.entity for r in rows} == {"a.py", "b.py"}

    async def test_other_users_are_invisible(self, session: InMemoryDb, alice_token: str):
        await session.insert_user("bob", "hash")
        await session.save_heartbeats([beat(T0 + timedelta(seconds=30), sender="bob", entity="bob.py")])
        rows = await service.generate_statistics(session, alice_token, 100, None, WINDOW)
        assert "bob.py" not in {r.entity for r in rows}
        assert rows[0].total_seconds == 120

    async def test_unknown_token(self, session: InMemoryDb):
        with pytest.raises(UnknownApiToken):
            await service.generate_statistics(session, "bogus", 100, None, WINDOW)


class TestProjectAndTagStatistics:
    async def test_project_rows(self, session: InMemoryDb, alice_token: str):
        rows = await service.gen_project_statistics(session, alice_token, "codetime", 100, WINDOW)
        first = rows[0]
        assert first.entity == "a.py"
        assert first.total_seconds == 120
        assert first.hour == T0.hour
        # 2024-03-06 is a Wednesday.
        assert first.weekday == 3

    async def test_unknown_project(self, session: InMemoryDb, alice_token: str):
        with pytest.raises(InvalidRelation):
            await service.gen_project_statistics(session, alice_token, "other", 100, WINDOW)

    async def test_foreign_project(self, session: InMemoryDb, alice_token: str):
        await session.insert_user("bob", "hash")
        await session.save_heartbeats([beat(T0, sender="bob", project="bobs")])
        with pytest.raises(InvalidRelation):
            await service.gen_project_statistics(session, alice_token, "bobs", 100, WINDOW)

    async def test_tag_rows(self, session: InMemoryDb, alice_token: str):
        await session.set_tags("alice", "codetime", ["work"])
        rows = await service.gen_tag_statistics(session, alice_token, "work", 100, WINDOW)
        assert sum(r.total_seconds for r in rows) == 120

    async def test_foreign_tag(self, session: InMemoryDb, alice_token: str):
        await session.insert_user("bob", "hash")
        await session.save_heartbeats([beat(T0, sender="bob", project="bobs")])
        await session.set_tags("bob", "bobs", ["work"])
        with pytest.raises(InvalidTagRelation):
            await service.gen_tag_statistics(session, alice_token, "work", 100, WINDOW)
        with pytest.raises(InvalidTagRelation):
            await service.generate_statistics(session, alice_token, 100, "work", WINDOW)


class TestTimeline:
    async def test_merges_consecutive_activity(self, db: InMemoryDb, alice_token: str):
        await db.save_heartbeats(
            [
                beat(T0, sender="alice", language="Python"),
                beat(T0 + timedelta(minutes=1), sender="alice", language="Python"),
                beat(T0 + timedelta(minutes=2), sender="alice", language="Go"),
                beat(T0 + timedelta(minutes=3), sender="alice", language="Go"),
            ]
        )
        rows = await service.get_timeline(db, alice_token, 100, WINDOW)
        assert [(r.language, r.range_start, r.range_end) for r in rows] == [
            ("Python", T0, T0 + timedelta(minutes=2)),
            ("Go", T0 + timedelta(minutes=2), T0 + timedelta(minutes=3)),
        ]


class TestListings:
    async def test_projects_in_window(self, session: InMemoryDb, alice_token: str):
        await session.save_heartbeats([beat(NOW - timedelta(days=3), sender="alice", project="old")])
        assert await service.get_user_projects(session, alice_token, *WINDOW) == ["codetime"]

    async def test_tags(self, session: InMemoryDb, alice_token: str):
        await session.set_tags("alice", "codetime", ["b", "a"])
        assert await service.get_user_tags(session, alice_token) == ["a", "b"]


async def test_leaderboards_rank_by_time(session: InMemoryDb):
    await session.insert_user("bob", "hash")
    await session.save_heartbeats(
        [
            beat(T0, sender="bob", language="Rust"),
            beat(T0 + timedelta(minutes=10), sender="bob", language="Rust"),
        ]
    )
    rows = await service.get_leaderboards(session, WINDOW, 10)
    assert [(r.sender, r.language, r.total_seconds) for r in rows] == [
        ("bob", "Rust", 600),
        ("alice", "Python", 120),
    ]


async def test_total_time_today(session: InMemoryDb, alice_token: str):
    assert await service.get_total_time_today(session, alice_token) == 120


async def test_total_time_between_keeps_request_order(session: InMemoryDb):
    ranges = [
        TimeRange(username="alice", project="codetime", start=T0, end=T0 + timedelta(minutes=1, seconds=1)),
        TimeRange(username="alice", project="codetime", start=T0, end=NOW),
        TimeRange(username="alice", project="missing", start=T0, end=NOW),
    ]
    assert await session.get_total_time_between(ranges) == [0, 120, 60]
    assert await service.get_total_time_between(session, ranges) == [60, 120, 0]


async def test_rows_without_project_sort_last(db: InMemoryDb, alice_token: str):
    await db.save_heartbeats(
        [
            beat(T0, sender="alice", project=None, entity="scratch"),
            beat(T0 + timedelta(hours=1), sender="alice", project="zzz", entity="z.py"),
        ]
    )
    rows = await service.generate_statistics(db, alice_token, 100, None, WINDOW)
    assert [r.project for r in rows] == ["zzz", None]


class TestDailyProjectTotals:
    def test_split_by_day(self):
        start = NOW - timedelta(days=1, hours=2)
        assert service.split_by_day(start, NOW) == [
            (start, start.replace(hour=0) + timedelta(days=1)),
            (NOW.replace(hour=0), NOW),
        ]

    def test_split_empty_window(self):
        assert service.split_by_day(NOW, NOW) == []

    async def test_totals_follow_window_order(self, session: InMemoryDb, alice_token: str):
        rows = await service.get_daily_project_totals(session, alice_token, "codetime", WINDOW)
        assert [(r.start, r.end, r.total_seconds) for r in rows] == [
            (WINDOW[0], NOW.replace(hour=0), 0),
            (NOW.replace(hour=0), NOW, 120),
        ]

    async def test_foreign_project(self, session: InMemoryDb, alice_token: str):
        await session.insert_user("bob", "hash")
        await session.save_heartbeats([beat(T0, sender="bob", project="bobs")])
        with pytest.raises(InvalidRelation):
            await service.get_daily_project_totals(session, alice_token, "bobs", WINDOW)
