"""
Database models package.
All models are exported here for easy import.
"""
from wedding_photos.models.user import User
from wedding_photos.models.album import Album
from wedding_photos.models.media_item import MediaItem

__all__ = ["User", "Album", "MediaItem"]
