"""
Album-related schemas.
"""
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from wedding_photos.schemas.base import CamelModel

if TYPE_CHECKING:
    from wedding_photos.models.album import Album


class AlbumResponse(CamelModel):
    """Album as seen by a viewer. id is the provider album id."""

    id: str
    title: str
    product_url: Optional[str] = None
    is_public: bool
    is_writeable: bool
    created_by_app: bool
    media_items_count: int
    cover_photo_base_url: Optional[str] = None
    is_owner: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_album(cls, album: "Album", viewer_id: Optional[int] = None) -> "AlbumResponse":
        return cls(
            id=album.provider_album_id,
            title=album.title,
            product_url=album.product_url,
            is_public=album.is_public,
            is_writeable=album.is_writeable,
            created_by_app=album.created_by_app,
            media_items_count=album.media_items_count or 0,
            cover_photo_base_url=album.cover_photo_base_url,
            is_owner=viewer_id is not None and album.owner_id == viewer_id,
            created_at=album.created_at,
            updated_at=album.updated_at,
        )


class AlbumListResponse(CamelModel):
    albums: List[AlbumResponse]
    next_page_token: Optional[str] = None
    total_count: int
