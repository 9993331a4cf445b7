"""
Translation of domain errors into HTTP errors, shared by the routers.
"""
from typing import Optional

from fastapi import HTTPException, status

from wedding_photos.errors import (
    AlbumAccessDeniedError,
    AlbumCreationError,
    AlbumNotFoundError,
    MediaItemNotFoundError,
    MediaLibraryError,
    UploadValidationError,
)
from wedding_photos.utils.circuit_breaker import CircuitBreakerOpenError
from wedding_photos.utils.prometheus_metrics import exceptions_total


def to_http_exception(exc: Exception) -> Optional[HTTPException]:
    """
    Map a domain exception to an HTTPException.

    Returns:
        HTTPException for known domain errors, None for anything else
    """
    if isinstance(exc, UploadValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Upload validation failed", "errors": exc.problems},
        )
    if isinstance(exc, AlbumNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Album not found")
    if isinstance(exc, MediaItemNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media item not found")
    if isinstance(exc, AlbumAccessDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access to this album is denied")
    if isinstance(exc, CircuitBreakerOpenError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Photo library temporarily unavailable, please retry shortly",
        )
    if isinstance(exc, MediaLibraryError):
        exceptions_total.inc()
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": f"Photo library request failed: {exc.message}",
                "operation": exc.operation,
                "upstreamStatus": exc.status_code,
            },
        )
    if isinstance(exc, AlbumCreationError):
        exceptions_total.inc()
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return None
