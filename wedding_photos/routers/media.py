"""
Media router: the caller's gallery and fresh download/display URLs.

Provider baseUrls expire, so every URL handed out here is derived from a
just-fetched copy of the item, never from the mirrored value.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from wedding_photos.database import get_db
from wedding_photos.dependencies.auth import get_current_active_user
from wedding_photos.dependencies.errors import to_http_exception
from wedding_photos.dependencies.media_library import get_media_library
from wedding_photos.models.user import User
from wedding_photos.schemas.media import (
    BulkDownloadRequest,
    BulkDownloadResponse,
    DownloadUrlResponse,
    MediaItemPage,
    MediaItemResponse,
)
from wedding_photos.services.gallery import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, GalleryService
from wedding_photos.services.google_photos import GooglePhotosClient

logger = logging.getLogger("wedding_photos.media")
router = APIRouter(prefix="/media", tags=["Media"])

DEFAULT_IMAGE_SIZE = 400


@router.get(
    "",
    response_model=MediaItemPage,
    summary="List the caller's media items",
)
async def list_my_media(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MediaItemPage:
    """
    Everything the caller has uploaded, newest capture time first.
    """
    result = await GalleryService(db).page_user_items(current_user, page, page_size)
    return MediaItemPage(
        items=[MediaItemResponse.from_item(item, item.album.provider_album_id) for item in result.items],
        next_page_token=result.next_page_token,
        total_count=result.total_count,
    )


@router.post(
    "/download-urls",
    response_model=BulkDownloadResponse,
    summary="Fresh download URLs for many items",
)
async def get_download_urls(
    body: BulkDownloadRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    media_library: GooglePhotosClient = Depends(get_media_library),
) -> BulkDownloadResponse:
    """
    Resolve up to 50 download URLs concurrently.

    - **mediaItemIds**: local media item ids

    Items that are missing, not visible, or fail upstream are returned with
    `status: "failed"` instead of failing the whole request.
    """
    service = GalleryService(db, media_library)
    try:
        items = await service.get_download_urls(current_user, body.media_item_ids)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return BulkDownloadResponse(
        items=items,
        success_count=sum(1 for item in items if item.status == "success"),
        total_count=len(items),
    )


@router.get(
    "/{item_id}/download-url",
    response_model=DownloadUrlResponse,
    summary="Fresh original-quality download URL",
)
async def get_download_url(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    media_library: GooglePhotosClient = Depends(get_media_library),
) -> DownloadUrlResponse:
    """
    Download URL for one item: `=d` for photos, `=dv` for videos.

    The URL is short-lived; request a new one instead of storing it.
    """
    service = GalleryService(db, media_library)
    try:
        return await service.get_download_url(current_user, item_id)
    except Exception as e:
        http_exc = to_http_exception(e)
        if http_exc is None:
            raise
        raise http_exc


@router.get(
    "/{item_id}/image",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    summary="Redirect to a fresh sized image URL",
)
async def get_image(
    item_id: int,
    w: int = Query(DEFAULT_IMAGE_SIZE),
    h: int = Query(DEFAULT_IMAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    media_library: GooglePhotosClient = Depends(get_media_library),
) -> RedirectResponse:
    """
    Redirect to the image bounded to w x h (each clamped to 1-4096).

    Suitable for `<img src>` with an Authorization-aware fetch; the bytes
    are served by the photo library, not by this API.
    """
    service = GalleryService(db, media_library)
    try:
        url = await service.get_display_url(current_user, item_id, w, h)
    except Exception as e:
        http_exc = to_http_exception(e)
        if http_exc is None:
            raise
        raise http_exc

    return RedirectResponse(url=url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
