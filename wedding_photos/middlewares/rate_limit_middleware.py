"""
Rate limiting using slowapi.

SlowAPIMiddleware applies the per-client default limit to every route.
Sign-in link requests get a tighter one of their own, since each accepted
request sends an email.
"""
import logging
from typing import Callable

from fastapi import FastAPI, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from wedding_photos.config import get_settings
from wedding_photos.utils.client_ip import get_client_ip
from wedding_photos.utils.prometheus_metrics import rate_limit_hits_total

logger = logging.getLogger("wedding_photos.rate_limit")
settings = get_settings()


def client_key(request: Request) -> str:
    return get_client_ip(request) or "unknown"


limiter = Limiter(
    key_func=client_key,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    enabled=settings.rate_limit_enabled,
    storage_uri="memory://",
)


# Sync: SlowAPIMiddleware calls the registered handler without awaiting it.
def _on_limit_exceeded(request: Request, exc: RateLimitExceeded):
    rate_limit_hits_total.labels(endpoint=request.url.path).inc()
    logger.warning(
        "Rate limit exceeded",
        extra={
            "event": "rate_limit",
            "client_ip": client_key(request),
            "endpoint": request.url.path,
            "limit": getattr(exc, "detail", "unknown"),
        },
    )
    return _rate_limit_exceeded_handler(request, exc)


def setup_rate_limiting(app: FastAPI, rate_limiter: Limiter = limiter) -> None:
    app.state.limiter = rate_limiter
    app.add_exception_handler(RateLimitExceeded, _on_limit_exceeded)
    app.add_middleware(SlowAPIMiddleware)


def get_rate_limit_decorator(limit: str) -> Callable:
    """slowapi per-route limit such as "5/minute"; passes the route through untouched when disabled."""
    if settings.rate_limit_enabled:
        return limiter.limit(limit)
    return lambda route: route
