"""
Media item schemas for gallery reads and download links.
"""
from datetime import datetime
from typing import TYPE_CHECKING, Any, List, Optional

from pydantic import Field

from wedding_photos.schemas.base import CamelModel
from wedding_photos.schemas.media_library import ProviderMediaItem

if TYPE_CHECKING:
    from wedding_photos.models.media_item import MediaItem


class MediaItemResponse(CamelModel):
    """
    Mirrored media item.

    image_url points at this API's redirect endpoint, which resolves a fresh
    provider URL on every request; the mirrored base_url is never exposed.
    """

    id: int
    provider_item_id: str
    album_id: str
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    media_type: str
    description: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    creation_time: Optional[datetime] = None
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    focal_length: Optional[float] = None
    aperture_f_number: Optional[float] = None
    iso_equivalent: Optional[int] = None
    exposure_time: Optional[str] = None
    fps: Optional[float] = None
    processing_status: Optional[str] = None
    contributor_info: Optional[dict[str, Any]] = None
    image_url: str

    @classmethod
    def from_item(cls, item: "MediaItem", provider_album_id: str) -> "MediaItemResponse":
        return cls(
            id=item.id,
            provider_item_id=item.provider_item_id,
            album_id=provider_album_id,
            filename=item.filename,
            mime_type=item.mime_type,
            media_type=item.media_type,
            description=item.description,
            width=item.width,
            height=item.height,
            creation_time=item.creation_time,
            camera_make=item.camera_make,
            camera_model=item.camera_model,
            focal_length=item.focal_length,
            aperture_f_number=item.aperture_f_number,
            iso_equivalent=item.iso_equivalent,
            exposure_time=item.exposure_time,
            fps=item.fps,
            processing_status=item.processing_status,
            contributor_info=item.contributor_info,
            image_url=f"/media/{item.id}/image",
        )


class MediaItemPage(CamelModel):
    items: List[MediaItemResponse]
    next_page_token: Optional[str] = None
    total_count: int


class DownloadUrlResponse(CamelModel):
    download_url: str
    filename: Optional[str] = None
    mime_type: Optional[str] = None


class BulkDownloadRequest(CamelModel):
    media_item_ids: List[int] = Field(default_factory=list)


class BulkDownloadItem(CamelModel):
    id: int
    download_url: Optional[str] = None
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    status: str  # success | failed
    error: Optional[str] = None


class BulkDownloadResponse(CamelModel):
    items: List[BulkDownloadItem]
    success_count: int
    total_count: int


class AlbumSyncResponse(CamelModel):
    """Provider page returned as-is; mirroring runs in the background."""

    media_items: List[ProviderMediaItem]
    next_page_token: Optional[str] = None
    sync_scheduled: bool
