"""
Services package.
Contains business logic and the Google Photos integration.
"""
from wedding_photos.services.google_photos import GooglePhotosClient
from wedding_photos.services.auth import AuthService
from wedding_photos.services.upload import UploadService
from wedding_photos.services.mirror_sync import MirrorSyncService
from wedding_photos.services.gallery import GalleryService

__all__ = [
    "GooglePhotosClient",
    "AuthService",
    "UploadService",
    "MirrorSyncService",
    "GalleryService",
]
