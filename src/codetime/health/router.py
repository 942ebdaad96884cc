"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends

from codetime.config import get_settings
from codetime.dependencies import get_db
from codetime.errors import PersistenceError
from codetime.storage.contract import Db

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: Db = Depends(get_db),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: checks storage connectivity."""
    checks: dict[str, object] = {}

    try:
        await db.ping()
        checks["database"] = "ok"
    except PersistenceError as exc:
        checks["database"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
