"""Fixtures for the PostgreSQL-backed storage tests.

The tests need a disposable database in CODETIME_TEST_DATABASE_URL. Locally
they are skipped without one; when CI is set a missing URL fails the run.
The schema is built by the Alembic migrations, once per session.
"""

from __future__ import annotations

import os
import subprocess
import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from codetime.database import create_session_factory
from codetime.db import models  # noqa: F401
from codetime.db.base import Base
from codetime.storage.postgres import PostgresDb

TEST_DATABASE_URL = os.environ.get("CODETIME_TEST_DATABASE_URL")
PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _alembic(*args: str) -> None:
    env = {**os.environ, "CODETIME_DATABASE_URL": TEST_DATABASE_URL or ""}
    subprocess.run(
        [sys.executable, "-m", "alembic", *args],
        check=True,
        capture_output=True,
        cwd=PROJECT_ROOT,
        env=env,
    )


@pytest.fixture(scope="session")
def migrated_database() -> str:
    """Rebuild the schema from scratch through every migration."""
    if TEST_DATABASE_URL is None:
        pytest.fail("CODETIME_TEST_DATABASE_URL must point at a disposable database when CI is set")
    _alembic("downgrade", "base")
    _alembic("upgrade", "head")
    return TEST_DATABASE_URL


@pytest_asyncio.fixture
async def pg_db(migrated_database: str) -> AsyncGenerator[PostgresDb, None]:
    """A PostgresDb over empty, migrated tables."""
    engine = create_async_engine(migrated_database)
    tables = ", ".join(table.name for table in Base.metadata.sorted_tables)
    async with engine.begin() as conn:
        await conn.execute(text(f"TRUNCATE {tables} RESTART IDENTITY CASCADE"))

    yield PostgresDb(create_session_factory(engine))

    await engine.dispose()
