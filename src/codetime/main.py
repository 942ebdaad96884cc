"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

import httpx
from fastapi import FastAPI

from codetime.auth.router import router as auth_router
from codetime.badges.router import router as badges_router
from codetime.config import get_settings
from codetime.database import create_engine, create_session_factory
from codetime.heartbeats.router import router as heartbeats_router
from codetime.health.router import router as health_router
from codetime.imports.router import router as imports_router
from codetime.middleware import setup_middleware
from codetime.projects.router import router as projects_router
from codetime.stats.router import router as stats_router
from codetime.storage.contract import Db
from codetime.storage.postgres import PostgresDb


def create_app(db: Db | None = None, http_client: httpx.AsyncClient | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``db`` and ``http_client`` replace the backends the lifespan would
    otherwise create; injected objects are not closed on shutdown.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Startup and shutdown lifecycle."""
        engine = None
        if db is None:
            engine = create_engine(settings)
            app.state.db = PostgresDb(
                create_session_factory(engine),
                access_token_ttl=timedelta(minutes=settings.access_token_expire_minutes),
                heartbeat_timeout=timedelta(minutes=settings.heartbeat_timeout_minutes),
            )
        own_client = http_client is None
        app.state.http_client = http_client or httpx.AsyncClient(timeout=settings.badge_request_timeout_seconds)

        yield

        if own_client:
            await app.state.http_client.aclose()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Codetime API",
        description="Self-hosted coding activity tracker compatible with WakaTime editor plugins",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    if db is not None:
        app.state.db = db
    if http_client is not None:
        app.state.http_client = http_client

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(heartbeats_router)
    app.include_router(imports_router)
    app.include_router(stats_router)
    app.include_router(projects_router)
    app.include_router(badges_router)

    return app


app = create_app()
