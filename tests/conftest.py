"""
Shared test fixtures.

Environment is configured before any wedding_photos import so the cached
settings and the engine pick up the temporary database.
"""
import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Set

_TMP_DIR = tempfile.mkdtemp(prefix="wedding-photos-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{Path(_TMP_DIR) / 'test.db'}"
os.environ["ENVIRONMENT"] = "DEV"
os.environ["LOG_DIR"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-long-enough-0123456789"

import httpx
import pytest
import pytest_asyncio

from wedding_photos.config import MediaLibraryConfig
from wedding_photos.database import Base, async_session_maker, engine, utcnow
from wedding_photos.dependencies.media_library import get_media_library
from wedding_photos.errors import MediaLibraryError
from wedding_photos.main import app
from wedding_photos.models.album import Album
from wedding_photos.models.user import User
from wedding_photos.schemas.media_library import (
    BatchItemResult,
    MediaMetadata,
    NewMediaItem,
    PhotoMetadata,
    ProviderAlbum,
    ProviderItemPage,
    ProviderMediaItem,
    UploadSession,
)
from wedding_photos.utils.prometheus_metrics import ready
from wedding_photos.utils.security import create_access_token

UPLOAD_ENDPOINT = "https://photoslibrary.test/v1/uploads"


def make_provider_item(
    item_id: str,
    filename: str,
    mime_type: str = "image/jpeg",
    created: Optional[datetime] = None,
    base_url: Optional[str] = None,
    camera_make: Optional[str] = None,
) -> ProviderMediaItem:
    photo = PhotoMetadata(camera_make=camera_make) if mime_type.startswith("image/") else None
    return ProviderMediaItem(
        id=item_id,
        filename=filename,
        mime_type=mime_type,
        description=f"Uploaded: {filename}",
        product_url=f"https://photos.test/lr/photo/{item_id}",
        base_url=base_url or f"https://lh3.test/{item_id}/v0",
        media_metadata=MediaMetadata(
            creation_time=created or datetime(2024, 6, 1, 12, 0, 0),
            width="4032",
            height="3024",
            photo=photo,
        ),
    )


class FakeMediaLibrary:
    """
    In-memory stand-in for GooglePhotosClient that records every call.

    get_item returns a new baseUrl on every call, like the real service
    whose URLs expire.
    """

    def __init__(self):
        self.config = MediaLibraryConfig(
            client_id="",
            client_secret="",
            refresh_token="",
            token_url="https://oauth.test/token",
            api_base_url="https://photoslibrary.test/v1",
            upload_url=UPLOAD_ENDPOINT,
            connect_timeout=1.0,
            read_timeout=1.0,
        )
        self.created_albums: List[str] = []
        self.minted = 0
        self.batch_calls: List[tuple] = []
        self.get_item_calls: List[str] = []
        self.items: Dict[str, ProviderMediaItem] = {}
        self.rejected_filenames: Set[str] = set()
        self.missing_items: Set[str] = set()
        self.on_create_album = None
        self.create_album_error: Optional[Exception] = None
        self._rotation = 0

    @property
    def network_calls(self) -> int:
        return len(self.created_albums) + self.minted + len(self.batch_calls) + len(self.get_item_calls)

    async def get_access_token(self) -> str:
        return "access-token-1"

    async def create_album(self, title: str) -> ProviderAlbum:
        self.created_albums.append(title)
        album_id = f"AL{len(self.created_albums)}"
        if self.create_album_error is not None:
            raise self.create_album_error
        if self.on_create_album is not None:
            await self.on_create_album()
        return ProviderAlbum(
            id=album_id,
            title=title,
            product_url=f"https://photos.test/lr/album/{album_id}",
            is_writeable=True,
        )

    async def mint_upload_session(self) -> UploadSession:
        self.minted += 1
        return UploadSession(
            endpoint=UPLOAD_ENDPOINT,
            authorization="access-token-1",
            expires_at=utcnow() + timedelta(hours=1),
        )

    async def batch_create_items(self, album_id: str, items: List[NewMediaItem]) -> List[BatchItemResult]:
        self.batch_calls.append((album_id, list(items)))
        results = []
        for item in items:
            if item.filename in self.rejected_filenames:
                results.append(
                    BatchItemResult(upload_token=item.upload_token, status_message="Failed: invalid upload token")
                )
                continue
            provider_id = f"item-{item.upload_token}"
            mime = "video/quicktime" if item.filename.endswith(".mov") else "image/jpeg"
            media = make_provider_item(provider_id, item.filename, mime)
            self.items[provider_id] = media
            results.append(
                BatchItemResult(
                    upload_token=item.upload_token,
                    provider_item_id=provider_id,
                    status_message="Success",
                    media_item=media,
                )
            )
        return results

    async def get_item(self, provider_item_id: str) -> ProviderMediaItem:
        self.get_item_calls.append(provider_item_id)
        if provider_item_id in self.missing_items or provider_item_id not in self.items:
            raise MediaLibraryError("Requested entity was not found.", 404, "get_item")
        self._rotation += 1
        return self.items[provider_item_id].model_copy(
            update={"base_url": f"https://lh3.test/{provider_item_id}/v{self._rotation}"}
        )

    async def list_items_in_album(
        self, album_id: str, page_size: int = 50, page_token: Optional[str] = None
    ) -> ProviderItemPage:
        return ProviderItemPage(media_items=list(self.items.values())[:page_size])

    async def close(self) -> None:
        pass


@pytest_asyncio.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def media_library() -> FakeMediaLibrary:
    return FakeMediaLibrary()


@pytest_asyncio.fixture
async def client(media_library):
    app.dependency_overrides[get_media_library] = lambda: media_library
    ready.set(1)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


async def create_user(
    email: str = "guest@example.com",
    display_name: Optional[str] = "Guest",
    is_active: bool = True,
) -> User:
    async with async_session_maker() as session:
        user = User(email=email, display_name=display_name, is_active=is_active)
        session.add(user)
        await session.commit()
        return user


async def create_album(owner: User, provider_album_id: str, is_public: bool = False) -> Album:
    async with async_session_maker() as session:
        album = Album(
            provider_album_id=provider_album_id,
            owner_id=owner.id,
            title=f"Wedding Photos - {owner.label}",
            is_public=is_public,
        )
        session.add(album)
        await session.commit()
        return album


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
