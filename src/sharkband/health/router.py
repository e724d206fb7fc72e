"""Health, readiness, and version endpoints."""

from fastapi import APIRouter
from redis.exceptions import RedisError

from sharkband.config import get_settings
from sharkband.ledger.errors import PersistenceFailure
from sharkband.redis_client import get_redis, redis_enabled
from sharkband.runtime import get_runtime

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness check. Returns 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness() -> dict[str, object]:
    """Readiness check: ledger store and, when configured, Redis."""
    checks: dict[str, object] = {}

    try:
        await get_runtime().store.ping()
        checks["store"] = "ok"
    except (RuntimeError, PersistenceFailure) as exc:
        checks["store"] = f"error: {exc}"

    if redis_enabled():
        try:
            await get_redis().ping()
            checks["redis"] = "ok"
        except (RedisError, RuntimeError, OSError) as exc:
            checks["redis"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
        "storage_backend": settings.storage_backend,
    }
