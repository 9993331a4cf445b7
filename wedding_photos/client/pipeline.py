"""
Client-side upload pipeline: negotiate, transfer, finalize.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from wedding_photos.client.api import WeddingPhotosClient
from wedding_photos.client.executor import DirectUploadExecutor
from wedding_photos.client.files import LocalFile
from wedding_photos.errors import AllTransfersFailedError
from wedding_photos.schemas.upload import FinalizedItem, UploadTokenEntry

logger = logging.getLogger("wedding_photos.client.pipeline")


@dataclass
class UploadSummary:
    album_id: str
    uploaded: int
    total: int
    items: List[FinalizedItem] = field(default_factory=list)
    # filename -> reason, for transfers that never reached finalize
    transfer_failures: Dict[str, str] = field(default_factory=dict)

    @property
    def message(self) -> str:
        return f"{self.uploaded} of {self.total} files uploaded"


class UploadPipeline:
    """
    Runs one batch end to end.

    Finalize receives exactly the tokens of successful transfers, in the
    order the files were given. If no transfer succeeds, finalize is not
    called at all.
    """

    def __init__(self, api: WeddingPhotosClient, executor: DirectUploadExecutor):
        self.api = api
        self.executor = executor

    async def run(
        self,
        paths: Sequence[Union[str, Path]],
        description: Optional[str] = None,
    ) -> UploadSummary:
        """
        Raises:
            FileNotFoundError: a path is not a readable file
            ApiRequestError: negotiate or finalize was rejected
            AllTransfersFailedError: no file reached the photo library
        """
        files = [LocalFile.from_path(p) for p in paths]

        negotiated = await self.api.negotiate([f.descriptor() for f in files])
        logger.info(
            "Upload negotiated",
            extra={"event": "upload", "album_id": negotiated.album_id, "file_count": len(files)},
        )

        report = await self.executor.transfer_all(
            files, negotiated.upload_endpoint, negotiated.authorization
        )
        if not report.tokens:
            raise AllTransfersFailedError(report.failures)

        tokens = [
            UploadTokenEntry(filename=f.filename, upload_session_token=report.tokens[f.filename])
            for f in files
            if f.filename in report.tokens
        ]
        finalized = await self.api.finalize(negotiated.album_id, tokens, description)

        summary = UploadSummary(
            album_id=negotiated.album_id,
            uploaded=finalized.files_uploaded,
            total=len(files),
            items=finalized.media_items,
            transfer_failures=report.failures,
        )
        logger.info(summary.message, extra={"event": "upload", "album_id": negotiated.album_id})
        return summary
