"""
Domain exceptions raised by services and translated to HTTP by routers.
"""
from typing import List, Optional


class UploadValidationError(ValueError):
    """
    A batch of file descriptors failed static validation.

    Carries one problem per offending entry so the caller can fix all of
    them at once rather than one round-trip per file.
    """

    def __init__(self, problems: List[dict]):
        self.problems = problems
        summary = "; ".join(
            f"{p['filename']}: {p['reason']}" if p.get("filename") else p["reason"]
            for p in problems
        )
        super().__init__(f"Upload validation failed: {summary}")


class MediaLibraryError(Exception):
    """A call to the Media Library Service failed as a whole."""

    def __init__(self, message: str, status_code: Optional[int] = None, operation: str = ""):
        self.message = message
        self.status_code = status_code
        self.operation = operation
        super().__init__(
            f"{operation or 'media library'} failed"
            + (f" ({status_code})" if status_code is not None else "")
            + f": {message}"
        )


class UpstreamUnavailableError(MediaLibraryError):
    """Transport failure, 429 or 5xx: counts against the circuit breaker."""


class AlbumCreationError(Exception):
    """The user's album could not be created or recorded."""


class AlbumNotFoundError(LookupError):
    pass


class AlbumAccessDeniedError(PermissionError):
    pass


class MediaItemNotFoundError(LookupError):
    pass


class AllTransfersFailedError(Exception):
    """Every direct transfer in a batch failed; finalize must not run."""

    def __init__(self, failures: dict):
        self.failures = failures
        super().__init__(f"All files failed to upload ({len(failures)} of {len(failures)})")


class ApiRequestError(Exception):
    """The Wedding Photos API answered a client call with an error status."""

    def __init__(self, status_code: int, detail: object):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"API request failed ({status_code}): {detail}")
