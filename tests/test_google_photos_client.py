"""
Tests for the Google Photos client against a mocked HTTP transport.
"""
import json
from typing import List

import httpx
import pytest

from wedding_photos.config import MediaLibraryConfig
from wedding_photos.errors import MediaLibraryError, UpstreamUnavailableError
from wedding_photos.schemas.media_library import NewMediaItem
from wedding_photos.services.google_photos import GooglePhotosClient, download_url, sized_url
from wedding_photos.utils.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError

API = "https://photoslibrary.test/v1"
TOKEN_URL = "https://oauth.test/token"


def _config(configured: bool = True) -> MediaLibraryConfig:
    return MediaLibraryConfig(
        client_id="client-id" if configured else "",
        client_secret="client-secret" if configured else "",
        refresh_token="refresh-token" if configured else "",
        token_url=TOKEN_URL,
        api_base_url=API,
        upload_url=f"{API}/uploads",
        connect_timeout=1.0,
        read_timeout=1.0,
    )


class Recorder:
    """MockTransport handler that routes by URL and records requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == TOKEN_URL:
            return httpx.Response(200, json={"access_token": "ya29.token", "expires_in": 3599})
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": {"message": "Requested entity was not found."}})
        return handler(request)

    def calls_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


def _client(recorder: Recorder, configured: bool = True, breaker=None) -> GooglePhotosClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return GooglePhotosClient(_config(configured), http=http, breaker=breaker)


async def test_create_album_sends_title_with_bearer_token():
    recorder = Recorder({
        ("POST", "/v1/albums"): lambda r: httpx.Response(
            200, json={"id": "AL1", "title": json.loads(r.content)["album"]["title"], "isWriteable": True}
        ),
    })
    client = _client(recorder)

    album = await client.create_album("Wedding Photos - Guest")

    assert album.id == "AL1"
    assert album.is_writeable is True
    request = recorder.calls_to("/v1/albums")[0]
    assert request.headers["Authorization"] == "Bearer ya29.token"
    assert json.loads(request.content) == {"album": {"title": "Wedding Photos - Guest"}}


async def test_access_token_is_cached_between_calls():
    recorder = Recorder({
        ("POST", "/v1/albums"): lambda r: httpx.Response(200, json={"id": "AL1"}),
    })
    client = _client(recorder)

    await client.create_album("a")
    await client.create_album("b")
    session = await client.mint_upload_session()

    token_calls = [r for r in recorder.requests if str(r.url) == TOKEN_URL]
    assert len(token_calls) == 1
    assert session.authorization == "ya29.token"
    assert session.endpoint == f"{API}/uploads"


async def test_unconfigured_credentials_fail_without_network():
    recorder = Recorder({})
    client = _client(recorder, configured=False)

    with pytest.raises(MediaLibraryError) as exc_info:
        await client.get_access_token()

    assert "not configured" in exc_info.value.message
    assert recorder.requests == []


async def test_batch_create_maps_results_by_position():
    def batch(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["albumId"] == "AL1"
        assert [i["simpleMediaItem"]["uploadToken"] for i in body["newMediaItems"]] == ["t1", "t2", "t3"]
        return httpx.Response(200, json={
            "newMediaItemResults": [
                {"uploadToken": "t1", "status": {"message": "Success"},
                 "mediaItem": {"id": "M1", "filename": "a.jpg", "mimeType": "image/jpeg"}},
                {"uploadToken": "t2", "status": {"message": "Failed: invalid token", "code": 3}},
            ]
        })

    recorder = Recorder({("POST", "/v1/mediaItems:batchCreate"): batch})
    client = _client(recorder)

    results = await client.batch_create_items("AL1", [
        NewMediaItem(filename="a.jpg", upload_token="t1", description="Uploaded: a.jpg"),
        NewMediaItem(filename="b.jpg", upload_token="t2"),
        NewMediaItem(filename="c.jpg", upload_token="t3"),
    ])

    assert [r.provider_item_id for r in results] == ["M1", None, None]
    assert results[0].succeeded
    assert results[1].status_message == "Failed: invalid token"
    assert results[2].upload_token == "t3"
    assert results[2].status_message == "No result returned"


async def test_missing_item_is_not_an_outage():
    recorder = Recorder({})
    breaker = CircuitBreaker("google_photos_test_404", failure_threshold=1)
    client = _client(recorder, breaker=breaker)

    for _ in range(3):
        with pytest.raises(MediaLibraryError) as exc_info:
            await client.get_item("gone")
        assert not isinstance(exc_info.value, UpstreamUnavailableError)
        assert exc_info.value.status_code == 404
        assert exc_info.value.operation == "get_item"

    assert breaker.state.value == "CLOSED"


async def test_server_errors_open_the_breaker():
    recorder = Recorder({
        ("GET", "/v1/mediaItems/M1"): lambda r: httpx.Response(503, json={"error": {"message": "Backend Error"}}),
    })
    breaker = CircuitBreaker("google_photos_test_503", failure_threshold=2, timeout=60)
    client = _client(recorder, breaker=breaker)

    for _ in range(2):
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await client.get_item("M1")
        assert exc_info.value.status_code == 503

    with pytest.raises(CircuitBreakerOpenError):
        await client.get_item("M1")

    assert len(recorder.calls_to("/v1/mediaItems/M1")) == 2


async def test_list_items_clamps_page_size_and_passes_token():
    def search(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body == {"albumId": "AL1", "pageSize": 100, "pageToken": "next-1"}
        return httpx.Response(200, json={
            "mediaItems": [{"id": "M1", "baseUrl": "https://lh3.test/M1"}],
            "nextPageToken": "next-2",
        })

    recorder = Recorder({("POST", "/v1/mediaItems:search"): search})
    client = _client(recorder)

    page = await client.list_items_in_album("AL1", page_size=500, page_token="next-1")

    assert [item.id for item in page.media_items] == ["M1"]
    assert page.next_page_token == "next-2"


def test_download_and_display_urls():
    assert download_url("https://lh3.test/M1", "image/jpeg") == "https://lh3.test/M1=d"
    assert download_url("https://lh3.test/M1", "video/mp4") == "https://lh3.test/M1=dv"
    assert download_url("https://lh3.test/M1", None) == "https://lh3.test/M1=d"
    assert sized_url("https://lh3.test/M1", 400, 300) == "https://lh3.test/M1=w400-h300"
