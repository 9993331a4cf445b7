"""
API routers package.
"""
from wedding_photos.routers.auth import router as auth_router
from wedding_photos.routers.uploads import router as uploads_router
from wedding_photos.routers.albums import router as albums_router
from wedding_photos.routers.media import router as media_router
from wedding_photos.routers.health import router as health_router

__all__ = ["auth_router", "uploads_router", "albums_router", "media_router", "health_router"]
