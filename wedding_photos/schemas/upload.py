"""
Upload pipeline request/response schemas.

Validation of file descriptors (types, sizes, batch ceiling) happens in the
upload service so that every offending file is reported in one 400 response.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from wedding_photos.schemas.base import CamelModel


class FileDescriptor(CamelModel):
    filename: str
    mime_type: str
    size_bytes: int


class NegotiateUploadRequest(CamelModel):
    files: List[FileDescriptor]


class NegotiateUploadResponse(CamelModel):
    """
    Everything the client needs to send bytes straight to the provider.

    album_id is the provider album id to pass back to finalize.
    """

    album_id: str
    album_title: str
    upload_endpoint: str
    authorization: str
    expires_at: datetime


class UploadTokenEntry(CamelModel):
    filename: str
    upload_session_token: str


class FinalizeUploadRequest(CamelModel):
    tokens: List[UploadTokenEntry]
    album_id: str
    description: Optional[str] = Field(
        None, description="Applied to every item; defaults to 'Uploaded: <filename>'"
    )


class FinalizedItem(CamelModel):
    filename: str
    provider_item_id: Optional[str] = None
    status: str  # success | failed
    message: Optional[str] = None


class FinalizeUploadResponse(CamelModel):
    files_uploaded: int
    total_count: int
    media_items: List[FinalizedItem]
