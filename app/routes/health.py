"""
Health check endpoints with database pool and cache monitoring.
"""

import time

from fastapi import APIRouter

from app.config import settings
from app.db.pool import db_health_check
from app.infrastructure.observability.logging import log_health_check
from app.services.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "event-discovery"}


@router.get("/readyz")
async def readyz():
    """Readiness check covering the database pool, Redis and API credentials."""
    checks = {}
    overall_ok = True

    # 1) Database pool
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        latency_ms = round((time.time() - t0) * 1000, 1)
        checks["database"] = {"ok": is_healthy, "latency_ms": latency_ms}

        if "pool_stats" in db_health:
            checks["database"]["pool_stats"] = db_health["pool_stats"]
        if "warnings" in db_health:
            checks["database"]["warnings"] = db_health["warnings"]
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")

        overall_ok = overall_ok and is_healthy
    except Exception as e:
        latency_ms = round((time.time() - t0) * 1000, 1)
        checks["database"] = {"ok": False, "error": f"{type(e).__name__}: {e}", "latency_ms": latency_ms}
        overall_ok = False
    log_health_check("database", checks["database"]["ok"], checks["database"]["latency_ms"])

    # 2) Redis is optional; only checked when configured
    if fast_redis.enabled:
        t0 = time.time()
        redis_ok = await fast_redis.ping()
        checks["redis"] = {"ok": redis_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
        overall_ok = overall_ok and redis_ok
        log_health_check("redis", redis_ok, checks["redis"]["latency_ms"])
    else:
        checks["redis"] = {"ok": True, "enabled": False}

    # 3) Configuration
    missing = settings.missing_credentials()
    if not settings.SUPABASE_DB_URL:
        missing.append("SUPABASE_DB_URL")
    config_ok = not missing
    checks["configuration"] = {
        "ok": config_ok,
        "issues": [f"{name} not set" for name in missing] or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and config_ok

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
