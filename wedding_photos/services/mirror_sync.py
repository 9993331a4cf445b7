"""
Metadata mirror sync: copy provider media item metadata into the local store.

The mirror is an index for fast, access-controlled listing. The provider is
the source of truth, so sync is best-effort: write failures are logged and
counted, never raised to the user-visible operation.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wedding_photos.database import get_db_context, utcnow
from wedding_photos.models.album import Album
from wedding_photos.models.media_item import MediaItem
from wedding_photos.schemas.media_library import ProviderMediaItem
from wedding_photos.utils.prometheus_metrics import mirror_sync_items_total, mirror_sync_total

logger = logging.getLogger("wedding_photos.mirror")

# Never overwritten by a re-sync
_INSERT_ONLY_COLUMNS = frozenset({"provider_item_id", "created_at"})


def classify_media_type(mime_type: Optional[str]) -> str:
    mime = (mime_type or "").lower()
    if mime.startswith("video/"):
        return "video"
    if mime.startswith("image/"):
        return "photo"
    return "other"


def parse_dimension(value: Optional[str]) -> Optional[int]:
    """Width/height arrive as numeric strings ("4032"); anything else is None."""
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_row(item: ProviderMediaItem, owner_id: int, album_id: int, now: datetime) -> dict[str, Any]:
    """Flatten a provider item into a media_items row."""
    meta = item.media_metadata
    photo = meta.photo if meta else None
    video = meta.video if meta else None
    contributor = (
        item.contributor_info.model_dump(by_alias=True, exclude_none=True)
        if item.contributor_info
        else None
    )
    return {
        "provider_item_id": item.id,
        "owner_id": owner_id,
        "album_id": album_id,
        "filename": item.filename,
        "mime_type": item.mime_type,
        "description": item.description,
        "product_url": item.product_url,
        "base_url": item.base_url,
        "media_type": classify_media_type(item.mime_type),
        "width": parse_dimension(meta.width) if meta else None,
        "height": parse_dimension(meta.height) if meta else None,
        "creation_time": _naive_utc(meta.creation_time) if meta else None,
        "camera_make": (photo.camera_make if photo else None) or (video.camera_make if video else None),
        "camera_model": (photo.camera_model if photo else None) or (video.camera_model if video else None),
        "focal_length": photo.focal_length if photo else None,
        "aperture_f_number": photo.aperture_f_number if photo else None,
        "iso_equivalent": photo.iso_equivalent if photo else None,
        "exposure_time": photo.exposure_time if photo else None,
        "fps": video.fps if video else None,
        "processing_status": video.status if video else None,
        "contributor_info": contributor or None,
        "created_at": now,
        "updated_at": now,
    }


class MirrorSyncService:
    """Upserts provider items keyed by provider_item_id."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise NotImplementedError(f"Upsert not supported for dialect {dialect}")

    async def sync(
        self,
        owner_id: int,
        album_id: int,
        items: Sequence[ProviderMediaItem],
    ) -> int:
        """
        Upsert items into the mirror and refresh the album's cached stats.

        Args:
            owner_id: local user id owning the items
            album_id: local album id the items belong to
            items: provider media items (from batchCreate or a listing)

        Returns:
            Number of rows written; 0 when nothing was written or the write failed
        """
        if not items:
            return 0

        now = utcnow()
        # Last occurrence wins if the provider repeats an id within one batch
        rows = list({item.id: to_row(item, owner_id, album_id, now) for item in items}.values())

        try:
            insert = self._insert()
            stmt = insert(MediaItem).values(rows)
            stmt = stmt.on_conflict_do_update(
                index_elements=[MediaItem.provider_item_id],
                set_={
                    name: stmt.excluded[name]
                    for name in rows[0]
                    if name not in _INSERT_ONLY_COLUMNS
                },
            )
            await self.db.execute(stmt)
            await self._refresh_album_stats(album_id, now)
            await self.db.commit()
        except (SQLAlchemyError, NotImplementedError) as e:
            await self.db.rollback()
            mirror_sync_total.labels(result="failure").inc()
            logger.error(
                "Mirror sync failed",
                exc_info=True,
                extra={
                    "event": "mirror",
                    "album_id": album_id,
                    "item_count": len(rows),
                    "error_type": type(e).__name__,
                },
            )
            return 0

        mirror_sync_total.labels(result="success").inc()
        mirror_sync_items_total.inc(len(rows))
        logger.info(
            "Mirror sync completed",
            extra={"event": "mirror", "album_id": album_id, "item_count": len(rows)},
        )
        return len(rows)

    async def _refresh_album_stats(self, album_id: int, now: datetime) -> None:
        count = await self.db.scalar(
            select(func.count(MediaItem.id)).where(MediaItem.album_id == album_id)
        )
        cover = await self.db.scalar(
            select(MediaItem.base_url)
            .where(MediaItem.album_id == album_id, MediaItem.media_type == "photo")
            .order_by(MediaItem.creation_time.desc(), MediaItem.id.desc())
            .limit(1)
        )
        await self.db.execute(
            update(Album)
            .where(Album.id == album_id)
            .values(media_items_count=count or 0, cover_photo_base_url=cover, updated_at=now)
        )


async def run_detached_sync(
    owner_id: int,
    album_id: int,
    items: Sequence[ProviderMediaItem],
) -> None:
    """
    Background-task entry point for mirror sync.

    Contract: runs after the response has been sent, on its own session, and
    never raises. Any failure (including opening the session) is logged and
    dropped; the next listing sync repairs the mirror.
    """
    try:
        async with get_db_context() as session:
            await MirrorSyncService(session).sync(owner_id, album_id, items)
    except Exception:
        mirror_sync_total.labels(result="failure").inc()
        logger.error(
            "Detached mirror sync crashed",
            exc_info=True,
            extra={"event": "mirror", "album_id": album_id, "item_count": len(items)},
        )
