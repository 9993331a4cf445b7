"""
Prometheus metrics for stability, availability and the upload pipeline.

- FastAPI: request count, latency (Instrumentator)
- Node/instance: app_info
- Stability: exceptions_total, db_errors_total, external_request_errors_total
- HA: ready gauge (1=up, 0=shutting down), in_flight_requests
- Pipeline: negotiations, finalize calls, per-item outcomes, album creation,
  orphaned albums, mirror sync, download URL refreshes

Every metric name carries the "wedding_photos_" prefix.
"""
import logging
import socket
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Sequence

from prometheus_client import REGISTRY, Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

from wedding_photos.config import get_settings

logger = logging.getLogger(__name__)

PREFIX = "wedding_photos_"
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


def _counter(name: str, doc: str, labels: Sequence[str] = ()) -> Counter:
    return Counter(PREFIX + name, doc, list(labels), registry=REGISTRY)


def _gauge(name: str, doc: str, labels: Sequence[str] = ()) -> Gauge:
    return Gauge(PREFIX + name, doc, list(labels), registry=REGISTRY)


def _histogram(name: str, doc: str, labels: Sequence[str] = (), buckets=LATENCY_BUCKETS) -> Histogram:
    return Histogram(PREFIX + name, doc, list(labels), buckets=buckets, registry=REGISTRY)


# Stability
exceptions_total = _counter("exceptions_total", "Unhandled exceptions")
db_errors_total = _counter("db_errors_total", "Database session errors that forced a rollback")
external_request_errors_total = _counter(
    "external_request_errors_total", "Failed calls to Google OAuth / Photos Library", ["service"]
)
# status: success | failure
external_request_total = _counter(
    "external_request_total", "Calls to Google OAuth / Photos Library by outcome", ["service", "status"]
)
external_request_duration_seconds = _histogram(
    "external_request_duration_seconds", "Google OAuth / Photos Library call latency", ["service", "result"]
)

# Circuit breaker; status: success | failure | rejected
circuit_breaker_requests_total = _counter(
    "circuit_breaker_requests_total", "Calls offered to a circuit breaker", ["service", "status"]
)
circuit_breaker_failures_total = _counter(
    "circuit_breaker_failures_total", "Upstream outages counted by a circuit breaker", ["service", "exception_type"]
)
circuit_breaker_state_transitions_total = _counter(
    "circuit_breaker_state_transitions_total", "Circuit breaker state changes", ["service", "from_state", "to_state"]
)
circuit_breaker_call_duration_seconds = _histogram(
    "circuit_breaker_call_duration_seconds", "Latency of calls admitted by a circuit breaker", ["service"]
)

# HA
ready = _gauge("ready", "Application ready (1=up, 0=shutting down)")
in_flight_requests = _gauge("in_flight_requests", "Requests currently being handled")

rate_limit_hits_total = _counter("rate_limit_hits_total", "Requests rejected by the rate limiter", ["endpoint"])

# operation: issue | verify
magic_link_requests_total = _counter(
    "magic_link_requests_total", "Sign-in link issue and verify attempts", ["operation", "result"]
)

# Upload pipeline
# result: success | validation_error | upstream_error
upload_negotiations_total = _counter("upload_negotiations_total", "Upload negotiation attempts", ["result"])
upload_negotiation_files = _histogram(
    "upload_negotiation_files", "Files per negotiated batch", buckets=(1, 2, 5, 10, 20, 30, 50)
)
# result: success | partial | failure
upload_finalize_total = _counter("upload_finalize_total", "Batch finalize calls", ["result"])
upload_items_total = _counter("upload_items_total", "Per-item outcome of batch finalize", ["status"])
# result: created | reused | adopted | failure
albums_created_total = _counter("albums_created_total", "Album get-or-create outcomes", ["result"])
orphaned_albums_total = _counter(
    "orphaned_albums_total", "Remote albums created whose local record could not be saved"
)
mirror_sync_total = _counter("mirror_sync_total", "Metadata mirror sync runs", ["result"])
mirror_sync_items_total = _counter("mirror_sync_items_total", "Media items upserted into the metadata mirror")
# kind: download | bulk | display
download_url_requests_total = _counter(
    "download_url_requests_total", "Fresh URL derivations against the media library", ["kind", "result"]
)


def _node_identity() -> str:
    """NODE_NAME when set, else the hostname."""
    settings = get_settings()
    if settings.node_name:
        return settings.node_name
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"


@asynccontextmanager
async def record_external_request(service: str) -> AsyncGenerator[None, None]:
    """Count and time one Google OAuth / Photos Library HTTP call."""
    started = time.perf_counter()
    result = "success"
    try:
        yield
    except Exception:
        result = "failure"
        external_request_errors_total.labels(service=service).inc()
        raise
    finally:
        external_request_total.labels(service=service, status=result).inc()
        external_request_duration_seconds.labels(service=service, result=result).observe(
            time.perf_counter() - started
        )


_app_info = _gauge(
    "app_info",
    "Application and node identity (labels only, value is 1)",
    ["node", "app", "version", "environment", "region"],
)


def setup_prometheus(app) -> None:
    """
    Register Prometheus instrumentation and expose /metrics.

    1. app_info identity gauge.
    2. Instrumentator (FastAPI request metrics, concrete status codes).
    """
    settings = get_settings()
    _app_info.labels(
        node=_node_identity(),
        app=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
        region=(settings.region or "").strip() or "unknown",
    ).set(1)

    Instrumentator(should_group_status_codes=False).instrument(app).expose(
        app, endpoint="/metrics"
    )
