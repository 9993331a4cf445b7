"""
Direct Upload Executor: send file bytes straight to the photo library.

Each transfer is attempted once. Failures are recorded per file and never
stop sibling transfers.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import httpx

from wedding_photos.client.files import DEFAULT_CHUNK_SIZE, LocalFile

logger = logging.getLogger("wedding_photos.client.transfer")


class TransferError(Exception):
    """One file could not be transferred."""


@dataclass
class TransferReport:
    tokens: Dict[str, str] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return len(self.tokens)


class DirectUploadExecutor:
    """
    Streams files to the raw upload endpoint returned by negotiate.

    Args:
        http: shared AsyncClient; its timeout applies to each transfer
        chunk_size: bytes read from disk per chunk
    """

    def __init__(self, http: httpx.AsyncClient, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.http = http
        self.chunk_size = chunk_size

    async def transfer(self, file: LocalFile, endpoint: str, authorization: str) -> str:
        """
        Upload one file and return its upload token.

        Raises:
            TransferError: non-2xx response or empty token
            httpx.HTTPError: transport failure
            OSError: the file could not be read
        """
        headers = {
            "Authorization": f"Bearer {authorization}",
            "Content-Type": "application/octet-stream",
            "X-Goog-Upload-Content-Type": file.mime_type,
            "X-Goog-Upload-Protocol": "raw",
            # Explicit length keeps the streamed body from being sent chunked
            "Content-Length": str(file.size_bytes),
        }
        response = await self.http.post(
            endpoint,
            content=file.iter_chunks(self.chunk_size),
            headers=headers,
        )
        if not response.is_success:
            raise TransferError(f"HTTP {response.status_code}: {response.text[:200]}")

        token = response.text.strip()
        if not token:
            raise TransferError("upload endpoint returned an empty token")
        return token

    async def _attempt(
        self, file: LocalFile, endpoint: str, authorization: str
    ) -> Tuple[str, Optional[str], Optional[str]]:
        try:
            token = await self.transfer(file, endpoint, authorization)
        except (TransferError, httpx.HTTPError, OSError) as e:
            error = str(e) or type(e).__name__
            logger.warning(
                "Transfer failed",
                extra={
                    "event": "transfer",
                    "file_name": file.filename,
                    "size_bytes": file.size_bytes,
                    "error_type": type(e).__name__,
                    "error": error[:200],
                },
            )
            return file.filename, None, error
        return file.filename, token, None

    async def transfer_all(
        self,
        files: Sequence[LocalFile],
        endpoint: str,
        authorization: str,
    ) -> TransferReport:
        """Transfer every file concurrently and collect tokens and failures."""
        results = await asyncio.gather(
            *(self._attempt(file, endpoint, authorization) for file in files)
        )
        report = TransferReport()
        for filename, token, error in results:
            if token is not None:
                report.tokens[filename] = token
            else:
                report.failures[filename] = error
        logger.info(
            "Transfers completed",
            extra={
                "event": "transfer",
                "succeeded": len(report.tokens),
                "failed": len(report.failures),
            },
        )
        return report
