"""
Media Library client dependency.

The client is built once at app creation and shared; tests override this
dependency with a stub.
"""
from fastapi import Request

from wedding_photos.services.google_photos import GooglePhotosClient


def get_media_library(request: Request) -> GooglePhotosClient:
    return request.app.state.media_library
