"""
Upload pipeline services: session negotiation and batch finalize.

Negotiate:
1. Validate descriptors (no I/O before this succeeds)
2. Get-or-create the caller's album, one per user
3. Mint upload authorization for direct-to-provider transfers

Finalize:
1. Check the target album belongs to the caller
2. One batchCreate call for all tokens
3. Zip results back to filenames by position

Mirroring into the metadata store is scheduled by the router afterwards.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wedding_photos.config import Settings, get_settings
from wedding_photos.database import utcnow
from wedding_photos.errors import (
    AlbumAccessDeniedError,
    AlbumCreationError,
    AlbumNotFoundError,
    UploadValidationError,
)
from wedding_photos.models.album import Album
from wedding_photos.models.user import User
from wedding_photos.schemas.media_library import NewMediaItem, ProviderMediaItem, UploadSession
from wedding_photos.schemas.upload import FileDescriptor, FinalizedItem, UploadTokenEntry
from wedding_photos.services.google_photos import GooglePhotosClient
from wedding_photos.services.upload_validation import validate_upload_batch
from wedding_photos.utils.prometheus_metrics import (
    albums_created_total,
    orphaned_albums_total,
    upload_items_total,
)

logger = logging.getLogger("wedding_photos.upload")


@dataclass
class NegotiatedUpload:
    album: Album
    session: UploadSession


@dataclass
class FinalizeResult:
    album: Album
    items: List[FinalizedItem]
    created_media: List[ProviderMediaItem] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return sum(1 for item in self.items if item.status == "success")


class UploadService:
    """
    Service for the server-side stages of the upload pipeline.
    """

    def __init__(
        self,
        db: AsyncSession,
        media_library: GooglePhotosClient,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.media_library = media_library
        self.settings = settings or get_settings()

    async def negotiate(self, user: User, files: Sequence[FileDescriptor]) -> NegotiatedUpload:
        """
        Prepare a batch for direct upload.

        Args:
            user: authenticated caller
            files: descriptors of the files about to be sent

        Returns:
            NegotiatedUpload with the destination album and upload session

        Raises:
            UploadValidationError: any descriptor is invalid (no I/O performed)
            MediaLibraryError: album creation or token refresh failed upstream
            AlbumCreationError: remote album created but not recorded locally
        """
        validate_upload_batch(files, self.settings)

        album = await self.get_or_create_album(user)
        # The remote album exists now; keep its row even if minting fails
        await self.db.commit()
        session = await self.media_library.mint_upload_session()

        logger.info(
            "Upload negotiated",
            extra={
                "event": "upload",
                "user_id": user.id,
                "album_id": album.id,
                "file_count": len(files),
            },
        )
        return NegotiatedUpload(album=album, session=session)

    async def get_user_album(self, user_id: int) -> Optional[Album]:
        result = await self.db.execute(select(Album).where(Album.owner_id == user_id))
        return result.scalar_one_or_none()

    def album_title_for(self, user: User, today: Optional[date] = None) -> str:
        """Deterministic title: prefix, who, and the UTC date of creation."""
        today = today or utcnow().date()
        return f"{self.settings.album_title_prefix} - {user.label} - {today.isoformat()}"

    async def get_or_create_album(self, user: User) -> Album:
        """
        Return the user's album, creating it remotely and locally if missing.

        Concurrent first uploads may both reach the create step. The unique
        owner_id constraint lets only one local insert win; the loser adopts
        the winner's row and its own remote album is left unused.

        Raises:
            MediaLibraryError: remote creation failed (nothing to clean up)
            AlbumCreationError: remote album exists but could not be recorded
        """
        user_id = user.id
        existing = await self.get_user_album(user_id)
        if existing is not None:
            albums_created_total.labels(result="reused").inc()
            return existing

        title = self.album_title_for(user)
        # End the read transaction before the remote call. On SQLite a
        # transaction that has already read cannot later take the write lock
        # while a rival holds it, so the insert below must start fresh.
        await self.db.commit()
        try:
            remote = await self.media_library.create_album(title)
        except Exception:
            albums_created_total.labels(result="failure").inc()
            raise

        album = Album(
            provider_album_id=remote.id,
            owner_id=user_id,
            title=remote.title or title,
            product_url=remote.product_url,
            is_writeable=remote.is_writeable,
            is_public=False,
            created_by_app=True,
        )

        try:
            await self._persist_album(album)
        except IntegrityError:
            winner = await self.get_user_album(user_id)
            if winner is None:
                self._record_orphan(remote.id, user_id, "integrity error without a winning row")
                raise AlbumCreationError("Failed to create album")
            albums_created_total.labels(result="adopted").inc()
            logger.warning(
                "Album creation race lost, adopting existing album",
                extra={
                    "event": "album",
                    "user_id": user_id,
                    "album_id": winner.id,
                    "unused_provider_album_id": remote.id,
                },
            )
            return winner
        except SQLAlchemyError as e:
            self._record_orphan(remote.id, user_id, type(e).__name__)
            raise AlbumCreationError("Failed to create album") from e

        albums_created_total.labels(result="created").inc()
        logger.info(
            "Album created",
            extra={"event": "album", "user_id": user_id, "album_id": album.id},
        )
        return album

    async def _persist_album(self, album: Album) -> None:
        async with self.db.begin_nested():
            self.db.add(album)

    def _record_orphan(self, provider_album_id: str, user_id: int, reason: str) -> None:
        orphaned_albums_total.inc()
        logger.error(
            "Orphaned album: created upstream but not recorded locally",
            extra={
                "event": "album_orphaned",
                "user_id": user_id,
                "provider_album_id": provider_album_id,
                "reason": reason,
            },
        )

    async def get_album_for_upload(self, user: User, provider_album_id: str) -> Album:
        """
        Raises:
            AlbumNotFoundError: unknown album id
            AlbumAccessDeniedError: album belongs to someone else
        """
        result = await self.db.execute(
            select(Album).where(Album.provider_album_id == provider_album_id)
        )
        album = result.scalar_one_or_none()
        if album is None:
            raise AlbumNotFoundError(provider_album_id)
        if album.owner_id != user.id:
            raise AlbumAccessDeniedError(provider_album_id)
        return album

    async def finalize(
        self,
        user: User,
        tokens: Sequence[UploadTokenEntry],
        provider_album_id: str,
        description: Optional[str] = None,
    ) -> FinalizeResult:
        """
        Register uploaded bytes as media items in one batch call.

        Partial failure is a normal outcome and is reported per item. Only a
        failure of the batch call itself raises.

        Raises:
            UploadValidationError: empty batch, too many tokens, blank token
            AlbumNotFoundError / AlbumAccessDeniedError: bad target album
            MediaLibraryError: the batchCreate call failed
        """
        self._validate_tokens(tokens)
        album = await self.get_album_for_upload(user, provider_album_id)

        new_items = [
            NewMediaItem(
                filename=entry.filename,
                upload_token=entry.upload_session_token.strip(),
                description=description or f"Uploaded: {entry.filename}",
            )
            for entry in tokens
        ]
        results = await self.media_library.batch_create_items(album.provider_album_id, new_items)

        items: List[FinalizedItem] = []
        created: List[ProviderMediaItem] = []
        for entry, result in zip(tokens, results):
            if result.succeeded:
                upload_items_total.labels(status="success").inc()
                if result.media_item is not None:
                    created.append(result.media_item)
            else:
                upload_items_total.labels(status="failed").inc()
            items.append(
                FinalizedItem(
                    filename=entry.filename,
                    provider_item_id=result.provider_item_id,
                    status="success" if result.succeeded else "failed",
                    message=result.status_message,
                )
            )

        finalize_result = FinalizeResult(album=album, items=items, created_media=created)
        logger.info(
            "Upload batch finalized",
            extra={
                "event": "upload",
                "user_id": user.id,
                "album_id": album.id,
                "created_count": finalize_result.created_count,
                "submitted": len(items),
            },
        )
        return finalize_result

    def _validate_tokens(self, tokens: Sequence[UploadTokenEntry]) -> None:
        if not tokens:
            raise UploadValidationError([{"filename": None, "reason": "no upload tokens provided"}])
        if len(tokens) > self.settings.max_batch_size:
            raise UploadValidationError([{
                "filename": None,
                "reason": f"too many items: {len(tokens)} (maximum {self.settings.max_batch_size} per batch)",
            }])
        blank = [
            {"filename": entry.filename, "reason": "upload token is empty"}
            for entry in tokens
            if not entry.upload_session_token.strip()
        ]
        if blank:
            raise UploadValidationError(blank)
