"""
Static validation of upload file descriptors.

Runs before any database or network call. Every problem in the batch is
collected so one response names every offending file.
"""
from pathlib import PurePosixPath
from typing import List, Optional, Sequence

from wedding_photos.config import Settings
from wedding_photos.errors import UploadValidationError
from wedding_photos.schemas.upload import FileDescriptor

IMAGE_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
})

VIDEO_MIME_TYPES = frozenset({
    "video/mp4",
    "video/quicktime",
    "video/mov",
    "video/avi",
    "video/x-msvideo",
    "video/wmv",
    "video/x-ms-wmv",
    "video/flv",
    "video/x-flv",
    "video/webm",
})

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".mov", ".avi", ".wmv", ".flv", ".webm"})


def mime_category(mime_type: str) -> Optional[str]:
    """'image', 'video', or None for types outside the allow-list."""
    mime = (mime_type or "").strip().lower()
    if mime in IMAGE_MIME_TYPES:
        return "image"
    if mime in VIDEO_MIME_TYPES:
        return "video"
    return None


def extension_category(filename: str) -> Optional[str]:
    ext = PurePosixPath(filename or "").suffix.lower()
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in VIDEO_EXTENSIONS:
        return "video"
    return None


def _megabytes(limit: int) -> str:
    return f"{limit // (1024 * 1024)}MB"


def check_file(descriptor: FileDescriptor, settings: Settings) -> List[str]:
    """Return the reasons one descriptor is rejected (empty when it is valid)."""
    reasons: List[str] = []
    filename = (descriptor.filename or "").strip()
    if not filename:
        return ["filename is required"]

    by_mime = mime_category(descriptor.mime_type)
    by_ext = extension_category(filename)
    ext = PurePosixPath(filename).suffix.lower() or "(none)"

    if by_mime is None:
        reasons.append(f"unsupported file type {descriptor.mime_type!r}")
    if by_ext is None:
        reasons.append(f"unsupported file extension {ext}")
    if by_mime and by_ext and by_mime != by_ext:
        reasons.append(f"extension {ext} does not match file type {descriptor.mime_type}")

    if descriptor.size_bytes <= 0:
        reasons.append("file is empty")
    elif by_mime == "image" and descriptor.size_bytes > settings.max_image_bytes:
        reasons.append(
            f"file size exceeds the {_megabytes(settings.max_image_bytes)} limit for images"
        )
    elif by_mime == "video" and descriptor.size_bytes > settings.max_video_bytes:
        reasons.append(
            f"file size exceeds the {_megabytes(settings.max_video_bytes)} limit for videos"
        )
    return reasons


def validate_upload_batch(files: Sequence[FileDescriptor], settings: Settings) -> None:
    """
    Validate a whole batch of file descriptors.

    Args:
        files: descriptors sent by the client
        settings: size ceilings and batch limit

    Raises:
        UploadValidationError: listing every offending file
    """
    if not files:
        raise UploadValidationError([{"filename": None, "reason": "no files provided"}])
    if len(files) > settings.max_batch_size:
        raise UploadValidationError([{
            "filename": None,
            "reason": f"too many files: {len(files)} (maximum {settings.max_batch_size} per batch)",
        }])

    problems: List[dict] = []
    seen: set[str] = set()
    for descriptor in files:
        reasons = check_file(descriptor, settings)
        # tokens are matched back to files by name on the client
        if descriptor.filename in seen:
            reasons.append("duplicate filename in batch")
        seen.add(descriptor.filename)
        problems.extend({"filename": descriptor.filename, "reason": r} for r in reasons)

    if problems:
        raise UploadValidationError(problems)
