"""
Gallery and album read paths over the metadata mirror.

Listing is served from the local store. Anything that produces a URL to the
actual bytes re-fetches the item from the provider first, because stored
baseUrls expire.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Generic, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from wedding_photos.errors import (
    AlbumAccessDeniedError,
    AlbumNotFoundError,
    MediaItemNotFoundError,
    MediaLibraryError,
)
from wedding_photos.models.album import Album
from wedding_photos.models.media_item import MediaItem
from wedding_photos.models.user import User
from wedding_photos.schemas.media import BulkDownloadItem, DownloadUrlResponse
from wedding_photos.schemas.media_library import ProviderItemPage, ProviderMediaItem
from wedding_photos.services.google_photos import GooglePhotosClient, download_url, sized_url
from wedding_photos.utils.circuit_breaker import CircuitBreakerOpenError
from wedding_photos.utils.prometheus_metrics import download_url_requests_total

logger = logging.getLogger("wedding_photos.gallery")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_BULK_DOWNLOAD = 50
MAX_IMAGE_DIMENSION = 4096

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T]
    next_page_token: Optional[str]
    total_count: int


def next_page_token(page: int, page_size: int, total: int) -> Optional[str]:
    """The page token is just the next 1-based page number."""
    return str(page + 1) if total > page * page_size else None


def _clamp_dimension(value: int) -> int:
    return max(1, min(value, MAX_IMAGE_DIMENSION))


class GalleryService:
    """
    Read-side service for albums and media items.
    """

    def __init__(self, db: AsyncSession, media_library: Optional[GooglePhotosClient] = None):
        self.db = db
        self.media_library = media_library

    # ---------------------------------------------------------------- albums

    async def list_albums(self, user: User, page: int, page_size: int) -> Page[Album]:
        """The caller's own album plus every public album, newest first."""
        visible = or_(Album.owner_id == user.id, Album.is_public.is_(True))
        total = await self.db.scalar(select(func.count(Album.id)).where(visible)) or 0
        result = await self.db.execute(
            select(Album)
            .where(visible)
            .order_by(Album.created_at.desc(), Album.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return Page(
            items=list(result.scalars().all()),
            next_page_token=next_page_token(page, page_size, total),
            total_count=total,
        )

    async def get_album_for_viewer(self, user: User, provider_album_id: str) -> Album:
        """
        Raises:
            AlbumNotFoundError: unknown album
            AlbumAccessDeniedError: not the owner and album is private
        """
        result = await self.db.execute(
            select(Album).where(Album.provider_album_id == provider_album_id)
        )
        album = result.scalar_one_or_none()
        if album is None:
            raise AlbumNotFoundError(provider_album_id)
        if album.owner_id != user.id and not album.is_public:
            raise AlbumAccessDeniedError(provider_album_id)
        return album

    async def get_own_album(self, user: User) -> Optional[Album]:
        result = await self.db.execute(select(Album).where(Album.owner_id == user.id))
        return result.scalar_one_or_none()

    # ----------------------------------------------------------------- items

    async def _page_items(self, condition, page: int, page_size: int) -> Page[MediaItem]:
        total = await self.db.scalar(select(func.count(MediaItem.id)).where(condition)) or 0
        result = await self.db.execute(
            select(MediaItem)
            .options(selectinload(MediaItem.album))
            .where(condition)
            .order_by(MediaItem.creation_time.desc(), MediaItem.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return Page(
            items=list(result.scalars().all()),
            next_page_token=next_page_token(page, page_size, total),
            total_count=total,
        )

    async def page_album_items(
        self,
        user: User,
        provider_album_id: str,
        page: int,
        page_size: int,
    ) -> Tuple[Album, Page[MediaItem]]:
        """Items of one visible album ordered by capture time, newest first."""
        album = await self.get_album_for_viewer(user, provider_album_id)
        items = await self._page_items(MediaItem.album_id == album.id, page, page_size)
        return album, items

    async def page_user_items(self, user: User, page: int, page_size: int) -> Page[MediaItem]:
        """The caller's own items across their album."""
        return await self._page_items(MediaItem.owner_id == user.id, page, page_size)

    def _visible_items_query(self, user: User):
        return (
            select(MediaItem)
            .join(Album, MediaItem.album_id == Album.id)
            .where(or_(MediaItem.owner_id == user.id, Album.is_public.is_(True)))
        )

    async def get_visible_item(self, user: User, item_id: int) -> MediaItem:
        """
        Raises:
            MediaItemNotFoundError: unknown id, or not visible to the caller
        """
        result = await self.db.execute(
            self._visible_items_query(user).where(MediaItem.id == item_id)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise MediaItemNotFoundError(item_id)
        return item

    # ------------------------------------------------------------- fresh URLs

    async def _fresh_provider_item(self, item: MediaItem) -> ProviderMediaItem:
        fresh = await self.media_library.get_item(item.provider_item_id)
        if not fresh.base_url:
            raise MediaLibraryError("Media item has no baseUrl", operation="get_item")
        return fresh

    async def get_download_url(self, user: User, item_id: int) -> DownloadUrlResponse:
        """
        Derive a download URL from a freshly fetched provider item.

        The stored base_url is never used and the row is not modified.
        """
        item = await self.get_visible_item(user, item_id)
        try:
            fresh = await self._fresh_provider_item(item)
        except Exception:
            download_url_requests_total.labels(kind="download", result="failure").inc()
            raise
        download_url_requests_total.labels(kind="download", result="success").inc()
        mime_type = fresh.mime_type or item.mime_type
        return DownloadUrlResponse(
            download_url=download_url(fresh.base_url, mime_type),
            filename=fresh.filename or item.filename,
            mime_type=mime_type,
        )

    async def get_download_urls(self, user: User, item_ids: Sequence[int]) -> List[BulkDownloadItem]:
        """
        Resolve many download URLs concurrently.

        Per-item failures are reported in the result, not raised.

        Raises:
            ValueError: empty request or more than 50 ids
        """
        if not item_ids:
            raise ValueError("No media item ids provided")
        ids = list(dict.fromkeys(item_ids))
        if len(ids) > MAX_BULK_DOWNLOAD:
            raise ValueError(f"Maximum {MAX_BULK_DOWNLOAD} items per request")

        # Load everything up front; the session is not used during fan-out
        result = await self.db.execute(
            self._visible_items_query(user).where(MediaItem.id.in_(ids))
        )
        visible = {item.id: item for item in result.scalars().all()}

        async def _resolve(item_id: int) -> BulkDownloadItem:
            item = visible.get(item_id)
            if item is None:
                return BulkDownloadItem(id=item_id, status="failed", error="Media item not found")
            try:
                fresh = await self._fresh_provider_item(item)
            except (MediaLibraryError, CircuitBreakerOpenError) as e:
                download_url_requests_total.labels(kind="bulk", result="failure").inc()
                return BulkDownloadItem(
                    id=item_id,
                    filename=item.filename,
                    mime_type=item.mime_type,
                    status="failed",
                    error=str(e),
                )
            download_url_requests_total.labels(kind="bulk", result="success").inc()
            mime_type = fresh.mime_type or item.mime_type
            return BulkDownloadItem(
                id=item_id,
                download_url=download_url(fresh.base_url, mime_type),
                filename=fresh.filename or item.filename,
                mime_type=mime_type,
                status="success",
            )

        resolved = await asyncio.gather(*(_resolve(item_id) for item_id in ids))
        failed = sum(1 for r in resolved if r.status != "success")
        if failed:
            logger.warning(
                "Bulk download partially failed",
                extra={"event": "download", "requested": len(ids), "failed": failed},
            )
        return list(resolved)

    async def get_display_url(self, user: User, item_id: int, width: int, height: int) -> str:
        """Fresh sized image URL for <img> tags."""
        item = await self.get_visible_item(user, item_id)
        try:
            fresh = await self._fresh_provider_item(item)
        except Exception:
            download_url_requests_total.labels(kind="display", result="failure").inc()
            raise
        download_url_requests_total.labels(kind="display", result="success").inc()
        return sized_url(fresh.base_url, _clamp_dimension(width), _clamp_dimension(height))

    # -------------------------------------------------------- provider listing

    async def sync_album_from_provider(
        self,
        user: User,
        provider_album_id: str,
        page_size: int,
        page_token: Optional[str] = None,
    ) -> Tuple[Album, ProviderItemPage]:
        """
        List one page of the album at the provider (owner only).

        The router schedules a detached mirror sync of the returned items
        and hands the provider page back unchanged.
        """
        album = await self.get_album_for_viewer(user, provider_album_id)
        if album.owner_id != user.id:
            raise AlbumAccessDeniedError(provider_album_id)
        provider_page = await self.media_library.list_items_in_album(
            album.provider_album_id, page_size=page_size, page_token=page_token
        )
        return album, provider_page
