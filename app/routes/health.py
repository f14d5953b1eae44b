# app/routes/health.py
"""
Health check endpoints: liveness, plus readiness across the database pool,
contest platform APIs and notification channels.
"""

import asyncio
import time

from fastapi import APIRouter

from app.config import settings
from app.db.pool import db_health_check
from app.infrastructure.observability.logging import log_health_check
from app.services.contest_sync_service import contest_sync_service
from app.services.notification_dispatcher import notification_dispatcher

router = APIRouter()


async def check_platforms() -> dict[str, bool]:
    return await contest_sync_service.health_check()


async def check_channels() -> dict[str, dict]:
    senders = notification_dispatcher.senders
    channels = list(senders)
    healthy = await asyncio.gather(*(senders[c].health_check() for c in channels))
    return {
        channel.value: {"enabled": senders[channel].is_enabled(), "ok": ok}
        for channel, ok in zip(channels, healthy)
    }


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "codenotify"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check with all dependencies.

    Only the database gates overall_ok; an unreachable platform or an
    unconfigured channel is reported but does not make the service unready.
    """
    checks = {}
    overall_ok = True

    # 1) Database pool
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }

        if "pool_stats" in db_health:
            checks["database"]["pool_stats"] = db_health["pool_stats"]
        if "warnings" in db_health:
            checks["database"]["warnings"] = db_health["warnings"]
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")

        overall_ok = overall_ok and is_healthy

    except Exception as e:
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = False

    log_health_check(
        "database",
        checks["database"]["ok"],
        checks["database"]["latency_ms"],
        checks["database"].get("error"),
    )

    # 2) Platform APIs
    t0 = time.time()
    try:
        platforms = await check_platforms()
        checks["platforms"] = {
            "ok": all(platforms.values()) if platforms else False,
            "latency_ms": round((time.time() - t0) * 1000, 1),
            "platforms": platforms,
        }
    except Exception as e:
        checks["platforms"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}

    # 3) Notification channels
    try:
        channels = await check_channels()
        checks["channels"] = {
            "ok": any(c["ok"] for c in channels.values()),
            "channels": channels,
        }
    except Exception as e:
        checks["channels"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}

    # 4) Configuration
    config_issues = []
    if not settings.ADMIN_API_KEY:
        config_issues.append("ADMIN_API_KEY not set (admin endpoints disabled)")
    if not settings.RESEND_API_KEY:
        config_issues.append("RESEND_API_KEY not set (email channel disabled)")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
