"""
Albums router: album listing, album gallery and provider sync.
"""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from wedding_photos.database import get_db
from wedding_photos.dependencies.auth import get_current_active_user
from wedding_photos.dependencies.errors import to_http_exception
from wedding_photos.dependencies.media_library import get_media_library
from wedding_photos.models.user import User
from wedding_photos.schemas.album import AlbumListResponse, AlbumResponse
from wedding_photos.schemas.media import AlbumSyncResponse, MediaItemPage, MediaItemResponse
from wedding_photos.services.gallery import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, GalleryService
from wedding_photos.services.google_photos import GooglePhotosClient
from wedding_photos.services.mirror_sync import run_detached_sync

logger = logging.getLogger("wedding_photos.albums")
router = APIRouter(prefix="/albums", tags=["Albums"])


@router.get(
    "",
    response_model=AlbumListResponse,
    summary="List visible albums",
)
async def list_albums(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AlbumListResponse:
    """
    The caller's own album plus all public albums, newest first.

    - **page**: 1-based page number
    - **pageSize**: items per page (max 100)
    """
    result = await GalleryService(db).list_albums(current_user, page, page_size)
    return AlbumListResponse(
        albums=[AlbumResponse.from_album(album, current_user.id) for album in result.items],
        next_page_token=result.next_page_token,
        total_count=result.total_count,
    )


@router.get(
    "/mine",
    response_model=AlbumResponse,
    summary="Get the caller's album",
)
async def get_my_album(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AlbumResponse:
    """
    The album created by the caller's first upload. 404 until then.
    """
    album = await GalleryService(db).get_own_album(current_user)
    if album is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No album yet; upload a photo to create one",
        )
    return AlbumResponse.from_album(album, current_user.id)


@router.get(
    "/{album_id}/items",
    response_model=MediaItemPage,
    summary="List items in an album",
)
async def list_album_items(
    album_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MediaItemPage:
    """
    Mirrored items of an album ordered by capture time, newest first.

    - **album_id**: provider album id
    - 403 unless the caller owns the album or it is public
    """
    service = GalleryService(db)
    try:
        album, result = await service.page_album_items(current_user, album_id, page, page_size)
    except Exception as e:
        http_exc = to_http_exception(e)
        if http_exc is None:
            raise
        raise http_exc

    return MediaItemPage(
        items=[MediaItemResponse.from_item(item, album.provider_album_id) for item in result.items],
        next_page_token=result.next_page_token,
        total_count=result.total_count,
    )


@router.post(
    "/{album_id}/sync",
    response_model=AlbumSyncResponse,
    summary="Fetch a page from the photo library and refresh the gallery",
)
async def sync_album(
    album_id: str,
    background_tasks: BackgroundTasks,
    page_size: int = Query(50, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    page_token: Optional[str] = Query(None, alias="pageToken"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    media_library: GooglePhotosClient = Depends(get_media_library),
) -> AlbumSyncResponse:
    """
    List one page of the album directly from the photo library (owner only).

    The page is returned as-is and mirrored into the gallery in the
    background. Pass `nextPageToken` back as `pageToken` to continue.
    """
    service = GalleryService(db, media_library)
    try:
        album, provider_page = await service.sync_album_from_provider(
            current_user, album_id, page_size, page_token
        )
    except Exception as e:
        http_exc = to_http_exception(e)
        if http_exc is None:
            raise
        raise http_exc

    await db.commit()

    scheduled = bool(provider_page.media_items)
    if scheduled:
        background_tasks.add_task(
            run_detached_sync, album.owner_id, album.id, provider_page.media_items
        )
    logger.info(
        "Album sync requested",
        extra={
            "event": "mirror",
            "album_id": album.id,
            "item_count": len(provider_page.media_items),
            "has_more": provider_page.next_page_token is not None,
        },
    )

    return AlbumSyncResponse(
        media_items=provider_page.media_items,
        next_page_token=provider_page.next_page_token,
        sync_scheduled=scheduled,
    )
