"""
Tests for the per-client default rate limit.
"""
import httpx
from fastapi import FastAPI
from prometheus_client import REGISTRY
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware

from wedding_photos.main import app
from wedding_photos.middlewares.rate_limit_middleware import client_key, setup_rate_limiting


def _limited_app(default_limit: str) -> FastAPI:
    limited = FastAPI()
    setup_rate_limiting(
        limited,
        Limiter(key_func=client_key, default_limits=[default_limit], storage_uri="memory://"),
    )

    @limited.get("/albums/mine")
    async def my_album():
        return {"albumId": "AL1"}

    return limited


async def test_default_limit_applies_to_undecorated_routes():
    before = REGISTRY.get_sample_value(
        "wedding_photos_rate_limit_hits_total", {"endpoint": "/albums/mine"}
    ) or 0.0
    transport = httpx.ASGITransport(app=_limited_app("2/minute"))

    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        statuses = [(await client.get("/albums/mine")).status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
    assert REGISTRY.get_sample_value(
        "wedding_photos_rate_limit_hits_total", {"endpoint": "/albums/mine"}
    ) == before + 1


def test_service_installs_default_limit_middleware():
    assert any(m.cls is SlowAPIMiddleware for m in app.user_middleware)
