"""
Tests for the metadata mirror.
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from prometheus_client import REGISTRY
from sqlalchemy import select

from wedding_photos.database import async_session_maker
from wedding_photos.models.album import Album
from wedding_photos.models.media_item import MediaItem
from wedding_photos.schemas.media_library import (
    ContributorInfo,
    MediaMetadata,
    ProviderMediaItem,
    VideoMetadata,
)
from wedding_photos.services.mirror_sync import (
    MirrorSyncService,
    classify_media_type,
    parse_dimension,
    run_detached_sync,
    to_row,
)
from tests.conftest import create_album, create_user, make_provider_item


async def _rows(album_id: int):
    async with async_session_maker() as session:
        result = await session.execute(
            select(MediaItem).where(MediaItem.album_id == album_id).order_by(MediaItem.id)
        )
        return list(result.scalars().all())


async def _album(album_id: int) -> Album:
    async with async_session_maker() as session:
        return await session.get(Album, album_id)


def test_to_row_flattens_photo_metadata():
    item = make_provider_item("M1", "a.jpg", camera_make="Canon")
    row = to_row(item, owner_id=1, album_id=2, now=datetime(2024, 6, 2))

    assert row["provider_item_id"] == "M1"
    assert row["media_type"] == "photo"
    assert (row["width"], row["height"]) == (4032, 3024)
    assert row["camera_make"] == "Canon"
    assert row["fps"] is None
    assert row["contributor_info"] is None


def test_to_row_flattens_video_metadata():
    item = ProviderMediaItem(
        id="V1",
        filename="first-dance.mov",
        mime_type="video/quicktime",
        base_url="https://lh3.test/V1",
        media_metadata=MediaMetadata(
            creation_time=datetime(2024, 6, 1, 20, 0, tzinfo=timezone(timedelta(hours=2))),
            width="1920",
            height="not-a-number",
            video=VideoMetadata(camera_make="Apple", fps=29.97, status="PROCESSING"),
        ),
        contributor_info=ContributorInfo(display_name="Ana"),
    )
    row = to_row(item, owner_id=1, album_id=2, now=datetime(2024, 6, 2))

    assert row["media_type"] == "video"
    assert row["width"] == 1920
    assert row["height"] is None
    assert row["creation_time"] == datetime(2024, 6, 1, 18, 0)
    assert row["camera_make"] == "Apple"
    assert row["fps"] == 29.97
    assert row["processing_status"] == "PROCESSING"
    assert row["contributor_info"] == {"displayName": "Ana"}


def test_helpers():
    assert classify_media_type("IMAGE/PNG") == "photo"
    assert classify_media_type("video/mp4") == "video"
    assert classify_media_type(None) == "other"
    assert parse_dimension(" 640 ") == 640
    assert parse_dimension(None) is None


async def test_upsert_twice_keeps_one_row_with_latest_values():
    user = await create_user()
    album = await create_album(user, "AL1")

    first = make_provider_item("M1", "a.jpg", base_url="https://lh3.test/M1/old")
    second = first.model_copy(update={"base_url": "https://lh3.test/M1/new", "description": "Edited"})

    async with async_session_maker() as session:
        assert await MirrorSyncService(session).sync(user.id, album.id, [first]) == 1
    async with async_session_maker() as session:
        assert await MirrorSyncService(session).sync(user.id, album.id, [second]) == 1

    rows = await _rows(album.id)
    assert len(rows) == 1
    assert rows[0].base_url == "https://lh3.test/M1/new"
    assert rows[0].description == "Edited"


async def test_sync_refreshes_album_stats():
    user = await create_user()
    album = await create_album(user, "AL1")
    items = [
        make_provider_item("M1", "a.jpg", created=datetime(2024, 6, 1, 10)),
        make_provider_item("M2", "b.jpg", created=datetime(2024, 6, 1, 12)),
        make_provider_item("V1", "c.mov", mime_type="video/quicktime", created=datetime(2024, 6, 1, 14)),
    ]

    async with async_session_maker() as session:
        await MirrorSyncService(session).sync(user.id, album.id, items)

    refreshed = await _album(album.id)
    assert refreshed.media_items_count == 3
    # newest photo, videos are never covers
    assert refreshed.cover_photo_base_url == "https://lh3.test/M2/v0"


async def test_empty_sync_writes_nothing():
    user = await create_user()
    album = await create_album(user, "AL1")

    async with async_session_maker() as session:
        assert await MirrorSyncService(session).sync(user.id, album.id, []) == 0

    assert await _rows(album.id) == []


async def test_detached_sync_swallows_write_failures():
    user = await create_user()
    await create_album(user, "AL1")

    # album 999 does not exist; the foreign key rejects the rows
    await run_detached_sync(user.id, 999, [make_provider_item("M1", "a.jpg")])

    assert await _rows(999) == []


async def test_detached_sync_writes_rows():
    user = await create_user()
    album = await create_album(user, "AL1")

    await run_detached_sync(user.id, album.id, [make_provider_item("M1", "a.jpg")])

    rows = await _rows(album.id)
    assert [r.provider_item_id for r in rows] == ["M1"]


async def test_unsupported_dialect_is_logged_not_raised(monkeypatch):
    user = await create_user()
    album = await create_album(user, "AL1")
    failures_before = REGISTRY.get_sample_value(
        "wedding_photos_mirror_sync_total", {"result": "failure"}
    ) or 0.0

    async with async_session_maker() as session:
        monkeypatch.setattr(
            session, "get_bind", lambda *args, **kwargs: SimpleNamespace(dialect=SimpleNamespace(name="mysql"))
        )
        written = await MirrorSyncService(session).sync(user.id, album.id, [make_provider_item("M1", "a.jpg")])

    assert written == 0
    assert await _rows(album.id) == []
    assert REGISTRY.get_sample_value(
        "wedding_photos_mirror_sync_total", {"result": "failure"}
    ) == failures_before + 1
