"""
Upload pipeline router: negotiate before the direct transfer, finalize after.

File bytes never reach this API. Clients send them straight to the photo
library using the authorization returned by /uploads/negotiate.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from wedding_photos.database import get_db
from wedding_photos.dependencies.auth import get_current_active_user
from wedding_photos.dependencies.errors import to_http_exception
from wedding_photos.dependencies.media_library import get_media_library
from wedding_photos.errors import UploadValidationError
from wedding_photos.models.user import User
from wedding_photos.schemas.upload import (
    FinalizeUploadRequest,
    FinalizeUploadResponse,
    NegotiateUploadRequest,
    NegotiateUploadResponse,
)
from wedding_photos.services.google_photos import GooglePhotosClient
from wedding_photos.services.mirror_sync import run_detached_sync
from wedding_photos.services.upload import UploadService
from wedding_photos.utils.prometheus_metrics import (
    upload_finalize_total,
    upload_negotiation_files,
    upload_negotiations_total,
)

logger = logging.getLogger("wedding_photos.uploads")
router = APIRouter(prefix="/uploads", tags=["Uploads"])


@router.post(
    "/negotiate",
    response_model=NegotiateUploadResponse,
    summary="Prepare a batch for direct upload",
)
async def negotiate_upload(
    body: NegotiateUploadRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    media_library: GooglePhotosClient = Depends(get_media_library),
) -> NegotiateUploadResponse:
    """
    Validate the batch, get or create the caller's album, and return upload
    authorization.

    - **files**: `[{filename, mimeType, sizeBytes}]`, at most 50

    Every invalid file is listed in one 400 response. Nothing is created
    when validation fails.

    ```
    POST {uploadEndpoint}
    Authorization: Bearer {authorization}
    Content-Type: application/octet-stream
    X-Goog-Upload-Content-Type: {mimeType}
    X-Goog-Upload-Protocol: raw
    ```
    The response body of each transfer is the upload token for finalize.
    """
    service = UploadService(db, media_library)
    try:
        negotiated = await service.negotiate(current_user, body.files)
    except UploadValidationError as e:
        upload_negotiations_total.labels(result="validation_error").inc()
        logger.warning(
            "Upload negotiation rejected",
            extra={"event": "upload", "user_id": current_user.id, "problems": len(e.problems)},
        )
        raise to_http_exception(e)
    except Exception as e:
        http_exc = to_http_exception(e)
        if http_exc is None:
            raise
        upload_negotiations_total.labels(result="upstream_error").inc()
        raise http_exc

    await db.commit()
    upload_negotiations_total.labels(result="success").inc()
    upload_negotiation_files.observe(len(body.files))

    return NegotiateUploadResponse(
        album_id=negotiated.album.provider_album_id,
        album_title=negotiated.album.title,
        upload_endpoint=negotiated.session.endpoint,
        authorization=negotiated.session.authorization,
        expires_at=negotiated.session.expires_at,
    )


@router.post(
    "/finalize",
    response_model=FinalizeUploadResponse,
    summary="Register uploaded files in the album",
)
async def finalize_upload(
    body: FinalizeUploadRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    media_library: GooglePhotosClient = Depends(get_media_library),
) -> FinalizeUploadResponse:
    """
    Turn upload tokens into media items with one batch call.

    - **tokens**: `[{filename, uploadSessionToken}]` for successful transfers only
    - **albumId**: album id returned by negotiate
    - **description**: optional, applied to every item

    Per-item failures are reported with `status: "failed"`. Successful items
    are mirrored into the gallery after the response is sent.
    """
    service = UploadService(db, media_library)
    try:
        result = await service.finalize(
            current_user, body.tokens, body.album_id, body.description
        )
    except Exception as e:
        http_exc = to_http_exception(e)
        if http_exc is None:
            raise
        upload_finalize_total.labels(result="failure").inc()
        raise http_exc

    # Release the session before the background sync opens its own
    await db.commit()

    if result.created_media:
        background_tasks.add_task(
            run_detached_sync, current_user.id, result.album.id, result.created_media
        )

    created = result.created_count
    if created == 0:
        upload_finalize_total.labels(result="failure").inc()
    elif created < len(result.items):
        upload_finalize_total.labels(result="partial").inc()
    else:
        upload_finalize_total.labels(result="success").inc()

    return FinalizeUploadResponse(
        files_uploaded=created,
        total_count=len(result.items),
        media_items=result.items,
    )
