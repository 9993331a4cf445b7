"""
Command line uploader.

    python -m wedding_photos.client upload --api https://api.example.com --token TOKEN a.jpg b.mov
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import httpx

from wedding_photos.client.api import WeddingPhotosClient
from wedding_photos.client.executor import DirectUploadExecutor
from wedding_photos.client.files import DEFAULT_CHUNK_SIZE
from wedding_photos.client.pipeline import UploadPipeline
from wedding_photos.config import get_settings
from wedding_photos.errors import AllTransfersFailedError, ApiRequestError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m wedding_photos.client")
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Upload photos and videos to your album")
    upload.add_argument("files", nargs="+", metavar="FILE")
    upload.add_argument("--api", required=True, help="API base URL")
    upload.add_argument("--token", required=True, help="Access token from /auth/verify")
    upload.add_argument("--description", default=None, help="Description for every item")
    upload.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)
    upload.add_argument(
        "--timeout",
        type=float,
        default=get_settings().google_upload_timeout,
        help="Per-file transfer timeout in seconds",
    )
    return parser


async def upload(args: argparse.Namespace) -> int:
    async with httpx.AsyncClient(timeout=httpx.Timeout(args.timeout, connect=10.0)) as http:
        async with WeddingPhotosClient(args.api, args.token) as api:
            pipeline = UploadPipeline(api, DirectUploadExecutor(http, args.chunk_size))
            try:
                summary = await pipeline.run(args.files, args.description)
            except AllTransfersFailedError as e:
                print(str(e), file=sys.stderr)
                for filename, reason in e.failures.items():
                    print(f"  {filename}: {reason}", file=sys.stderr)
                return 1
            except ApiRequestError as e:
                print(str(e), file=sys.stderr)
                return 1

    print(summary.message)
    for filename, reason in summary.transfer_failures.items():
        print(f"  {filename}: transfer failed: {reason}")
    for item in summary.items:
        if item.status != "success":
            print(f"  {item.filename}: {item.message}")
    return 0 if summary.uploaded else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    try:
        return asyncio.run(upload(args))
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
