"""
In-flight request tracking for graceful shutdown.
"""
import asyncio
import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from wedding_photos.utils.prometheus_metrics import in_flight_requests

logger = logging.getLogger("wedding_photos.request_tracking")

# Probes must keep answering while draining
EXCLUDED_PATHS = {"/health", "/health/liveness", "/health/readiness", "/health/detailed"}

_lock = asyncio.Lock()
_request_count = 0


def get_in_flight_requests() -> int:
    return _request_count


class RequestTrackingMiddleware(BaseHTTPMiddleware):
    """
    Counts requests currently being handled.

    The lifespan waits on this count before closing the DB and the Media
    Library client.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        global _request_count

        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        async with _lock:
            _request_count += 1
            in_flight_requests.set(_request_count)

        try:
            return await call_next(request)
        finally:
            async with _lock:
                _request_count = max(0, _request_count - 1)
                in_flight_requests.set(_request_count)


async def wait_for_requests(timeout: float = 30.0) -> bool:
    """
    Wait until no request is in flight.

    Args:
        timeout: maximum wait in seconds

    Returns:
        True if all requests finished, False on timeout
    """
    start_time = time.monotonic()

    while True:
        count = get_in_flight_requests()
        if count == 0:
            logger.info("All in-flight requests completed", extra={"event": "shutdown"})
            return True

        if time.monotonic() - start_time >= timeout:
            logger.warning(
                "Timeout waiting for in-flight requests",
                extra={"event": "shutdown", "remaining_requests": count, "timeout": timeout},
            )
            return False

        await asyncio.sleep(0.5)
