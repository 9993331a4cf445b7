"""
Google Photos Library API payloads.

Only the fields this service reads are modelled; unknown fields are ignored.
Numeric metadata such as width/height arrives as strings and is parsed by
mirror sync, not here.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from wedding_photos.schemas.base import CamelModel


class ProviderAlbum(CamelModel):
    id: str
    title: str = ""
    product_url: Optional[str] = None
    is_writeable: bool = False
    media_items_count: Optional[str] = None
    cover_photo_base_url: Optional[str] = None


class PhotoMetadata(CamelModel):
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    focal_length: Optional[float] = None
    aperture_f_number: Optional[float] = None
    iso_equivalent: Optional[int] = None
    exposure_time: Optional[str] = None


class VideoMetadata(CamelModel):
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    fps: Optional[float] = None
    status: Optional[str] = None


class MediaMetadata(CamelModel):
    creation_time: Optional[datetime] = None
    width: Optional[str] = None
    height: Optional[str] = None
    photo: Optional[PhotoMetadata] = None
    video: Optional[VideoMetadata] = None


class ContributorInfo(CamelModel):
    profile_picture_base_url: Optional[str] = None
    display_name: Optional[str] = None


class ProviderMediaItem(CamelModel):
    """A mediaItem resource as returned by get/search/batchCreate."""

    id: str
    description: Optional[str] = None
    product_url: Optional[str] = None
    base_url: Optional[str] = None
    mime_type: Optional[str] = None
    filename: Optional[str] = None
    media_metadata: Optional[MediaMetadata] = None
    contributor_info: Optional[ContributorInfo] = None


class NewMediaItem(CamelModel):
    """One entry of a batchCreate request, before wire encoding."""

    filename: str
    upload_token: str
    description: str = ""


class BatchItemResult(CamelModel):
    """
    One position of a batchCreate response.

    provider_item_id is None when the provider rejected this position.
    """

    upload_token: Optional[str] = None
    provider_item_id: Optional[str] = None
    status_message: Optional[str] = None
    media_item: Optional[ProviderMediaItem] = None

    @property
    def succeeded(self) -> bool:
        return self.provider_item_id is not None


class UploadSession(CamelModel):
    """Shared raw-upload endpoint plus the bearer credential good until expires_at."""

    endpoint: str
    authorization: str
    expires_at: datetime


class ProviderItemPage(CamelModel):
    media_items: List[ProviderMediaItem] = Field(default_factory=list)
    next_page_token: Optional[str] = None
