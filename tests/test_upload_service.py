"""
Tests for upload negotiation and batch finalize.
"""
import asyncio
import json
import logging
from datetime import date

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from wedding_photos.config import get_settings
from wedding_photos.database import async_session_maker
from wedding_photos.errors import (
    AlbumAccessDeniedError,
    AlbumCreationError,
    AlbumNotFoundError,
    MediaLibraryError,
    UploadValidationError,
)
from wedding_photos.models.album import Album
from wedding_photos.schemas.upload import FileDescriptor, UploadTokenEntry
from wedding_photos.services.upload import UploadService
from wedding_photos.utils.logger import JsonLinesFormatter
from tests.conftest import UPLOAD_ENDPOINT, create_album, create_user

MB = 1024 * 1024


def _jpeg(name: str = "a.jpg", size: int = 2 * MB) -> FileDescriptor:
    return FileDescriptor(filename=name, mime_type="image/jpeg", size_bytes=size)


async def _album_count(user_id: int) -> int:
    async with async_session_maker() as session:
        return await session.scalar(select(func.count(Album.id)).where(Album.owner_id == user_id))


async def test_first_negotiate_creates_album(media_library):
    user = await create_user(display_name="Ana")

    async with async_session_maker() as db:
        negotiated = await UploadService(db, media_library).negotiate(user, [_jpeg()])

    assert negotiated.album.provider_album_id == "AL1"
    assert negotiated.session.endpoint == UPLOAD_ENDPOINT
    assert negotiated.session.authorization == "access-token-1"
    assert len(media_library.created_albums) == 1
    assert media_library.created_albums[0].startswith("Wedding Photos - Ana - ")
    assert await _album_count(user.id) == 1


async def test_second_negotiate_reuses_album(media_library):
    user = await create_user()

    async with async_session_maker() as db:
        first = await UploadService(db, media_library).negotiate(user, [_jpeg()])
    async with async_session_maker() as db:
        second = await UploadService(db, media_library).negotiate(user, [_jpeg("b.jpg")])

    assert first.album.id == second.album.id
    assert len(media_library.created_albums) == 1
    assert media_library.minted == 2


async def test_album_title_uses_display_name_or_email(media_library):
    named = await create_user(email="ana@example.com", display_name="Ana")
    anonymous = await create_user(email="ben@example.com", display_name=None)

    async with async_session_maker() as db:
        service = UploadService(db, media_library)
        assert service.album_title_for(named, date(2024, 6, 1)) == "Wedding Photos - Ana - 2024-06-01"
        assert service.album_title_for(anonymous, date(2024, 6, 1)) == (
            "Wedding Photos - ben@example.com - 2024-06-01"
        )


async def test_invalid_batch_makes_no_network_calls(media_library):
    user = await create_user()
    files = [_jpeg(), FileDescriptor(filename="huge.png", mime_type="image/png", size_bytes=11 * MB)]

    async with async_session_maker() as db:
        with pytest.raises(UploadValidationError) as exc_info:
            await UploadService(db, media_library).negotiate(user, files)

    assert [p["filename"] for p in exc_info.value.problems] == ["huge.png"]
    assert media_library.network_calls == 0
    assert await _album_count(user.id) == 0


async def test_remote_album_failure_leaves_no_row(media_library):
    user = await create_user()
    media_library.create_album_error = MediaLibraryError("quota", 429, "create_album")

    async with async_session_maker() as db:
        with pytest.raises(MediaLibraryError):
            await UploadService(db, media_library).negotiate(user, [_jpeg()])

    assert await _album_count(user.id) == 0
    assert media_library.minted == 0


async def test_concurrent_first_uploads_share_one_album(media_library):
    user = await create_user()
    both_missed = asyncio.Event()

    async def wait_for_rival():
        # Both requests have looked up the album and found nothing
        if len(media_library.created_albums) == 2:
            both_missed.set()
        await asyncio.wait_for(both_missed.wait(), timeout=5)

    media_library.on_create_album = wait_for_rival
    orphans_before = REGISTRY.get_sample_value("wedding_photos_orphaned_albums_total") or 0.0
    adopted_before = REGISTRY.get_sample_value(
        "wedding_photos_albums_created_total", {"result": "adopted"}
    ) or 0.0

    async def negotiate(name: str):
        async with async_session_maker() as db:
            negotiated = await UploadService(db, media_library).negotiate(user, [_jpeg(name)])
            return negotiated.album.provider_album_id

    results = await asyncio.gather(negotiate("a.jpg"), negotiate("b.jpg"))

    assert len(media_library.created_albums) == 2
    assert results[0] == results[1]
    assert results[0] in {"AL1", "AL2"}
    assert await _album_count(user.id) == 1
    assert REGISTRY.get_sample_value("wedding_photos_orphaned_albums_total") == orphans_before
    assert REGISTRY.get_sample_value(
        "wedding_photos_albums_created_total", {"result": "adopted"}
    ) == adopted_before + 1


async def test_local_write_failure_records_orphan(media_library, monkeypatch):
    user = await create_user()
    before = REGISTRY.get_sample_value("wedding_photos_orphaned_albums_total") or 0.0

    async with async_session_maker() as db:
        service = UploadService(db, media_library)

        async def failing_persist(album):
            raise OperationalError("INSERT INTO albums", {}, Exception("disk I/O error"))

        monkeypatch.setattr(service, "_persist_album", failing_persist)
        with pytest.raises(AlbumCreationError):
            await service.negotiate(user, [_jpeg()])

    after = REGISTRY.get_sample_value("wedding_photos_orphaned_albums_total")
    assert after == before + 1
    assert media_library.created_albums
    assert media_library.minted == 0


async def test_finalize_single_batch_call_mapped_by_position(media_library):
    user = await create_user()
    await create_album(user, "AL1")
    tokens = [
        UploadTokenEntry(filename="x.jpg", upload_session_token="tok1"),
        UploadTokenEntry(filename="y.mov", upload_session_token=" tok2 "),
    ]

    async with async_session_maker() as db:
        result = await UploadService(db, media_library).finalize(user, tokens, "AL1")

    assert len(media_library.batch_calls) == 1
    album_id, sent = media_library.batch_calls[0]
    assert album_id == "AL1"
    assert [(i.filename, i.upload_token) for i in sent] == [("x.jpg", "tok1"), ("y.mov", "tok2")]
    assert sent[0].description == "Uploaded: x.jpg"
    assert [(i.filename, i.provider_item_id, i.status) for i in result.items] == [
        ("x.jpg", "item-tok1", "success"),
        ("y.mov", "item-tok2", "success"),
    ]
    assert result.created_count == 2
    assert [m.id for m in result.created_media] == ["item-tok1", "item-tok2"]


async def test_finalize_partial_failure_is_reported_per_item(media_library):
    user = await create_user()
    await create_album(user, "AL1")
    media_library.rejected_filenames = {"b.jpg"}
    tokens = [
        UploadTokenEntry(filename="a.jpg", upload_session_token="t1"),
        UploadTokenEntry(filename="b.jpg", upload_session_token="t2"),
        UploadTokenEntry(filename="c.jpg", upload_session_token="t3"),
    ]

    async with async_session_maker() as db:
        result = await UploadService(db, media_library).finalize(
            user, tokens, "AL1", description="Reception"
        )

    assert [i.status for i in result.items] == ["success", "failed", "success"]
    assert result.items[1].message == "Failed: invalid upload token"
    assert result.created_count == 2
    assert all(i.description == "Reception" for i in media_library.batch_calls[0][1])


async def test_finalize_rejects_foreign_and_unknown_albums(media_library):
    owner = await create_user(email="owner@example.com")
    intruder = await create_user(email="intruder@example.com")
    await create_album(owner, "AL1")
    tokens = [UploadTokenEntry(filename="a.jpg", upload_session_token="t1")]

    async with async_session_maker() as db:
        service = UploadService(db, media_library)
        with pytest.raises(AlbumAccessDeniedError):
            await service.finalize(intruder, tokens, "AL1")
        with pytest.raises(AlbumNotFoundError):
            await service.finalize(owner, tokens, "AL-missing")

    assert media_library.batch_calls == []


async def test_finalize_validates_tokens(media_library):
    user = await create_user()
    await create_album(user, "AL1")
    limit = get_settings().max_batch_size

    async with async_session_maker() as db:
        service = UploadService(db, media_library)
        with pytest.raises(UploadValidationError):
            await service.finalize(user, [], "AL1")
        with pytest.raises(UploadValidationError):
            await service.finalize(
                user,
                [UploadTokenEntry(filename=f"{i}.jpg", upload_session_token=f"t{i}") for i in range(limit + 1)],
                "AL1",
            )
        with pytest.raises(UploadValidationError) as exc_info:
            await service.finalize(
                user, [UploadTokenEntry(filename="blank.jpg", upload_session_token="  ")], "AL1"
            )

    assert exc_info.value.problems == [{"filename": "blank.jpg", "reason": "upload token is empty"}]
    assert media_library.batch_calls == []


async def test_finalize_logs_batch_summary_at_info(media_library, caplog):
    caplog.set_level(logging.INFO, logger="wedding_photos")
    user = await create_user()
    await create_album(user, "AL1")
    media_library.rejected_filenames = {"b.jpg"}
    tokens = [
        UploadTokenEntry(filename="a.jpg", upload_session_token="t1"),
        UploadTokenEntry(filename="b.jpg", upload_session_token="t2"),
    ]

    async with async_session_maker() as db:
        result = await UploadService(db, media_library).finalize(user, tokens, "AL1")

    assert result.created_count == 1
    record = next(r for r in caplog.records if r.getMessage() == "Upload batch finalized")
    assert record.created_count == 1
    assert record.submitted == 2
    line = json.loads(JsonLinesFormatter().format(record))
    assert line["ctx"]["created_count"] == 1
