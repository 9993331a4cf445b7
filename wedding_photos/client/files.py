"""
Local files selected for upload.
"""
import asyncio
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

from wedding_photos.schemas.upload import FileDescriptor

DEFAULT_CHUNK_SIZE = 1024 * 1024

# Not in every platform's mimetypes table
_EXTRA_TYPES = {
    ".mov": "video/quicktime",
    ".webp": "image/webp",
    ".flv": "video/x-flv",
    ".wmv": "video/x-ms-wmv",
}


@dataclass(frozen=True)
class LocalFile:
    path: Path
    filename: str
    mime_type: str
    size_bytes: int

    @classmethod
    def from_path(cls, path) -> "LocalFile":
        """
        Describe a file on disk.

        Raises:
            FileNotFoundError: path does not exist or is not a regular file
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Not a file: {path}")
        mime_type, _ = mimetypes.guess_type(path.name)
        mime_type = mime_type or _EXTRA_TYPES.get(path.suffix.lower(), "application/octet-stream")
        return cls(
            path=path,
            filename=path.name,
            mime_type=mime_type,
            size_bytes=path.stat().st_size,
        )

    def descriptor(self) -> FileDescriptor:
        return FileDescriptor(
            filename=self.filename,
            mime_type=self.mime_type,
            size_bytes=self.size_bytes,
        )

    async def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Read the file in chunks without blocking the event loop."""
        with self.path.open("rb") as f:
            while True:
                chunk = await asyncio.to_thread(f.read, chunk_size)
                if not chunk:
                    break
                yield chunk
