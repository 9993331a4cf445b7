"""
Health check router.

Probes for load balancers and Kubernetes, plus a detailed check that also
verifies the photo library credentials.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text

from wedding_photos.config import get_settings
from wedding_photos.database import engine
from wedding_photos.dependencies.media_library import get_media_library
from wedding_photos.services.google_photos import GooglePhotosClient
from wedding_photos.utils.prometheus_metrics import REGISTRY, Gauge, ready

logger = logging.getLogger("wedding_photos.health")
router = APIRouter(prefix="/health", tags=["Health"])

settings = get_settings()

health_check_status = Gauge(
    "wedding_photos_health_check_status",
    "Health check status (1=healthy, 0=unhealthy)",
    ["check_type"],
    registry=REGISTRY,
)

DB_PROBE_TIMEOUT = 1.0
MEDIA_LIBRARY_PROBE_TIMEOUT = 5.0


def _unavailable(detail: Any) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


def _require_ready(check_type: str, detail: str = "Application is not ready") -> None:
    if ready._value.get() != 1:
        health_check_status.labels(check_type=check_type).set(0)
        raise _unavailable(detail)


async def _ping_db() -> None:
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))


async def _probe(name: str, check: Callable[[], Awaitable[Any]], timeout: float) -> Dict[str, Any]:
    """Run one dependency check; never raises, reports up/down instead."""
    try:
        await asyncio.wait_for(check(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{name} health check timeout", extra={"event": "health", "check": name})
        return {"status": "down", "error": "Timeout"}
    except Exception as e:
        logger.warning(
            f"{name} health check failed",
            extra={"event": "health", "check": name, "error": str(e)[:200]},
        )
        return {"status": "down", "error": str(e)[:200]}
    return {"status": "up"}


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


@router.get("", summary="Health check (fast)")
async def health_check() -> Dict[str, Any]:
    """Load balancer check: readiness flag plus a short DB ping."""
    started = time.perf_counter()
    _require_ready("fast")

    database = await _probe("database", _ping_db, DB_PROBE_TIMEOUT)
    if database["status"] != "up":
        health_check_status.labels(check_type="fast").set(0)
        raise _unavailable(
            "Database connection timeout" if database["error"] == "Timeout"
            else "Database connection failed"
        )

    health_check_status.labels(check_type="fast").set(1)
    return {
        "status": "healthy",
        "duration_ms": _elapsed_ms(started),
        "instance": settings.instance_ip or "unknown",
    }


@router.get("/liveness", summary="Liveness probe (Kubernetes)")
async def liveness_probe() -> Dict[str, str]:
    _require_ready("liveness", "Application is shutting down")
    return {"status": "alive"}


@router.get("/readiness", summary="Readiness probe (Kubernetes)")
async def readiness_probe() -> Dict[str, str]:
    _require_ready("readiness")
    if (await _probe("database", _ping_db, DB_PROBE_TIMEOUT))["status"] != "up":
        raise _unavailable("Database not ready")
    return {"status": "ready"}


@router.get("/detailed", summary="Detailed health check (monitoring)")
async def detailed_health_check(
    media_library: GooglePhotosClient = Depends(get_media_library),
) -> Dict[str, Any]:
    """
    Per-dependency report for monitoring.

    The media library check mints an OAuth access token, so it also catches a
    revoked refresh token. It is reported as skipped when no credentials are
    configured.
    """
    started = time.perf_counter()
    _require_ready("detailed")

    checks: Dict[str, Dict[str, Any]] = {
        "database": await _probe("database", _ping_db, DB_PROBE_TIMEOUT),
    }
    if media_library.config.is_configured:
        checks["media_library"] = await _probe(
            "media_library", media_library.get_access_token, MEDIA_LIBRARY_PROBE_TIMEOUT
        )
    else:
        checks["media_library"] = {"status": "skipped", "reason": "Not configured"}

    healthy = all(check["status"] != "down" for check in checks.values())
    report = {
        "status": "healthy" if healthy else "unhealthy",
        "checks": checks,
        "duration_ms": _elapsed_ms(started),
        "instance": settings.instance_ip or "unknown",
    }

    health_check_status.labels(check_type="detailed").set(1 if healthy else 0)
    if not healthy:
        raise _unavailable(report)
    return report
