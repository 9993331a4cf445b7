"""
Pydantic schemas package.
All schemas are exported here for easy import.
"""
from wedding_photos.schemas.user import (
    MagicLinkRequest,
    MagicLinkResponse,
    VerifyMagicLinkRequest,
    Token,
    TokenPayload,
    UserResponse,
)
from wedding_photos.schemas.upload import (
    FileDescriptor,
    NegotiateUploadRequest,
    NegotiateUploadResponse,
    UploadTokenEntry,
    FinalizeUploadRequest,
    FinalizedItem,
    FinalizeUploadResponse,
)
from wedding_photos.schemas.album import AlbumResponse, AlbumListResponse
from wedding_photos.schemas.media import (
    MediaItemResponse,
    MediaItemPage,
    DownloadUrlResponse,
    BulkDownloadRequest,
    BulkDownloadItem,
    BulkDownloadResponse,
    AlbumSyncResponse,
)
from wedding_photos.schemas.media_library import (
    ProviderAlbum,
    ProviderMediaItem,
    NewMediaItem,
    BatchItemResult,
    UploadSession,
    ProviderItemPage,
)

__all__ = [
    # User schemas
    "MagicLinkRequest",
    "MagicLinkResponse",
    "VerifyMagicLinkRequest",
    "Token",
    "TokenPayload",
    "UserResponse",
    # Upload schemas
    "FileDescriptor",
    "NegotiateUploadRequest",
    "NegotiateUploadResponse",
    "UploadTokenEntry",
    "FinalizeUploadRequest",
    "FinalizedItem",
    "FinalizeUploadResponse",
    # Album schemas
    "AlbumResponse",
    "AlbumListResponse",
    # Media schemas
    "MediaItemResponse",
    "MediaItemPage",
    "DownloadUrlResponse",
    "BulkDownloadRequest",
    "BulkDownloadItem",
    "BulkDownloadResponse",
    "AlbumSyncResponse",
    # Provider payloads
    "ProviderAlbum",
    "ProviderMediaItem",
    "NewMediaItem",
    "BatchItemResult",
    "UploadSession",
    "ProviderItemPage",
]
