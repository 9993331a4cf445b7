"""
FastAPI Wedding Photos API application.

Main application entry point that configures:
- CORS middleware
- API routers
- Database lifecycle
- Logging system
- Exception handlers
- Prometheus metrics
- Rate limiting
- Graceful shutdown
"""
import asyncio
import logging
import signal
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wedding_photos.config import get_settings
from wedding_photos.database import close_db, init_db
from wedding_photos.middlewares.logging_middleware import LoggingMiddleware
from wedding_photos.middlewares.rate_limit_middleware import setup_rate_limiting
from wedding_photos.middlewares.request_tracking_middleware import (
    RequestTrackingMiddleware,
    wait_for_requests,
)
from wedding_photos.routers import (
    albums_router,
    auth_router,
    health_router,
    media_router,
    uploads_router,
)
from wedding_photos.services.google_photos import GooglePhotosClient
from wedding_photos.utils.logger import get_request_id, log_error, log_info, setup_logging
from wedding_photos.utils.prometheus_metrics import exceptions_total, ready, setup_prometheus

settings = get_settings()
logger = logging.getLogger("wedding_photos")

setup_logging()

SHUTDOWN_DRAIN_SECONDS = 30.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan with graceful shutdown.

    Shutdown sequence:
    1. SIGTERM/SIGINT received
    2. Readiness drops (ready=0) so the load balancer stops sending traffic
    3. In-flight requests are drained (up to 30 seconds)
    4. The photo library client and the DB engine are closed
    """
    loop = asyncio.get_running_loop()

    def signal_handler():
        ready.set(0)
        log_info("Shutdown signal received", event="lifecycle")

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform or outside the main thread
            pass

    if settings.is_production:
        from wedding_photos.utils.config_validator import validate_all_config

        config_ok, config_errors = await validate_all_config()
        if not config_ok:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in config_errors)
            log_error(
                "Startup failed: configuration validation errors",
                error_message=error_msg,
                event="lifecycle",
            )
            raise RuntimeError(error_msg)
        log_info("Configuration validation passed", event="lifecycle")

    await init_db()
    ready.set(1)
    log_info(
        "Application startup completed",
        event="lifecycle",
        version=settings.app_version,
        environment=settings.environment.value,
        media_library_configured=app.state.media_library.config.is_configured,
    )

    yield

    ready.set(0)
    log_info("Application shutdown initiated", event="lifecycle")

    await wait_for_requests(timeout=SHUTDOWN_DRAIN_SECONDS)

    await app.state.media_library.close()
    await close_db()

    log_info("Graceful shutdown completed", event="lifecycle")


def create_app() -> FastAPI:
    """Build the application; the photo library client is created here and shared."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="""
## Wedding Photos API

Guests sign in with an emailed link and upload photos and videos straight
into their own album in the shared photo library.

### Upload flow
1. `POST /uploads/negotiate` with file descriptors: album + upload authorization
2. Send each file's bytes directly to `uploadEndpoint` (not through this API)
3. `POST /uploads/finalize` with the upload tokens: items are added to the album

### Gallery
Albums and items are served from a local mirror. Download and image URLs are
refreshed from the photo library on every request.

### Authentication
`POST /auth/magic-link`, then `POST /auth/verify` with the token from the
link. Use the returned token as `Authorization: Bearer <token>`.
        """,
        openapi_tags=[
            {"name": "Authentication", "description": "Passwordless sign-in"},
            {"name": "Uploads", "description": "Direct upload negotiation and finalize"},
            {"name": "Albums", "description": "Album listing, gallery and sync"},
            {"name": "Media", "description": "Media items and fresh download URLs"},
            {"name": "Health", "description": "Probes"},
        ],
        lifespan=lifespan,
    )

    app.state.media_library = GooglePhotosClient(settings.media_library_config())

    # Prometheus: FastAPI metrics + node info at /metrics
    setup_prometheus(app)

    setup_rate_limiting(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestTrackingMiddleware)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Unhandled exceptions become a 500 with the request id so a user
        report can be matched to the logs.
        """
        exceptions_total.inc()
        rid = get_request_id()

        log_error(
            "Unhandled exception occurred",
            error_type=type(exc).__name__,
            error_message=str(exc),
            error_code="INTERNAL_SERVER_ERROR",
            http_method=request.method,
            http_path=request.url.path,
            event="exception",
            exc_info=True,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "request_id": rid,
            },
        )

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(uploads_router)
    app.include_router(albums_router)
    app.include_router(media_router)

    @app.get(
        "/",
        tags=["Root"],
        summary="API information",
    )
    async def root():
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
        }

    return app


app = create_app()
