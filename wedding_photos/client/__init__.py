"""
Async upload client: negotiate with the API, send bytes directly to the
photo library, then finalize.
"""
from wedding_photos.client.api import WeddingPhotosClient
from wedding_photos.client.executor import DirectUploadExecutor, TransferError, TransferReport
from wedding_photos.client.files import LocalFile
from wedding_photos.client.pipeline import UploadPipeline, UploadSummary

__all__ = [
    "WeddingPhotosClient",
    "DirectUploadExecutor",
    "TransferError",
    "TransferReport",
    "LocalFile",
    "UploadPipeline",
    "UploadSummary",
]
