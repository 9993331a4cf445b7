"""
Google Photos Library API client (the Media Library Service).

Handles OAuth token refresh, album creation, batch registration of uploaded
bytes, and item lookups. File bytes never pass through this service: clients
upload them straight to `upload_url` with the authorization minted here.

API reference: https://developers.google.com/photos/library/reference/rest
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, List, Optional

import httpx

from wedding_photos.config import MediaLibraryConfig
from wedding_photos.database import utcnow
from wedding_photos.errors import MediaLibraryError, UpstreamUnavailableError
from wedding_photos.schemas.media_library import (
    BatchItemResult,
    NewMediaItem,
    ProviderAlbum,
    ProviderItemPage,
    ProviderMediaItem,
    UploadSession,
)
from wedding_photos.utils.circuit_breaker import CircuitBreaker
from wedding_photos.utils.logger import log_error, log_info, log_warning
from wedding_photos.utils.prometheus_metrics import record_external_request
from wedding_photos.utils.retry import retry_with_backoff

logger = logging.getLogger("wedding_photos.media_library")

SERVICE_NAME = "google_photos"

# Refresh this long before the provider-reported expiry
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)

MAX_PAGE_SIZE = 100


def download_url(base_url: str, mime_type: Optional[str]) -> str:
    """Original-quality download URL: `=dv` for videos, `=d` for everything else."""
    suffix = "=dv" if (mime_type or "").startswith("video/") else "=d"
    return f"{base_url}{suffix}"


def sized_url(base_url: str, width: int, height: int) -> str:
    """Display URL bounded to width x height."""
    return f"{base_url}=w{width}-h{height}"


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message") or error.get("status") or response.reason_phrase
    if isinstance(error, str):
        # OAuth endpoint shape: {"error": "invalid_grant", "error_description": "..."}
        return data.get("error_description") or error
    return response.reason_phrase


class GooglePhotosClient:
    """
    Async client for the Google Photos Library API.

    Token strategy:
    1. One app-level OAuth refresh token (configured, never per-user)
    2. Access token cached until 5 minutes before expiry
    3. asyncio.Lock with double-check so concurrent requests refresh once
    4. Refresh retried with exponential backoff (idempotent)

    Every other call goes through a circuit breaker and is not retried, so
    provider outages surface to the caller immediately.
    """

    def __init__(
        self,
        config: MediaLibraryConfig,
        http: Optional[httpx.AsyncClient] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.config = config
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            timeout=httpx.Timeout(config.read_timeout, connect=config.connect_timeout),
        )
        self._breaker = breaker or CircuitBreaker(
            SERVICE_NAME, failure_threshold=5, success_threshold=2, timeout=60.0
        )
        self._token: Optional[str] = None
        self._token_expires: Optional[datetime] = None
        self._lock = asyncio.Lock()

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------ auth

    def _token_is_fresh(self) -> bool:
        return bool(
            self._token
            and self._token_expires
            and utcnow() < self._token_expires - TOKEN_REFRESH_MARGIN
        )

    async def get_access_token(self) -> str:
        """
        Return a valid OAuth access token, refreshing it if needed.

        Raises:
            MediaLibraryError: credentials missing or refresh rejected
            UpstreamUnavailableError: token endpoint unreachable after retries
        """
        if self._token_is_fresh():
            return self._token

        async with self._lock:
            if self._token_is_fresh():
                return self._token

            return await retry_with_backoff(
                self._refresh_access_token,
                max_attempts=3,
                initial_delay=0.5,
                max_delay=4.0,
                retryable_exceptions=(UpstreamUnavailableError,),
                target="google.oauth_refresh",
            )

    async def _refresh_access_token(self) -> str:
        if not self.config.is_configured:
            raise MediaLibraryError(
                "Google Photos credentials are not configured", operation="oauth_refresh"
            )

        async with record_external_request("google_oauth"):
            try:
                response = await self._http.post(
                    self.config.token_url,
                    data={
                        "client_id": self.config.client_id,
                        "client_secret": self.config.client_secret,
                        "refresh_token": self.config.refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
            except httpx.HTTPError as e:
                raise UpstreamUnavailableError(
                    f"{type(e).__name__}: {e}", operation="oauth_refresh"
                ) from e

            if response.status_code >= 500 or response.status_code == 429:
                raise UpstreamUnavailableError(
                    _error_message(response), response.status_code, "oauth_refresh"
                )
            if response.status_code != 200:
                message = _error_message(response)
                log_error(
                    "Google OAuth refresh rejected",
                    error_type="AuthenticationError",
                    error_message=message,
                    upstream_service="google_oauth",
                    http_status=response.status_code,
                    event="media_library",
                )
                raise MediaLibraryError(message, response.status_code, "oauth_refresh")

            data = response.json()
            token = data.get("access_token")
            if not token:
                raise MediaLibraryError(
                    "Token response has no access_token", response.status_code, "oauth_refresh"
                )

        expires_in = int(data.get("expires_in") or 3600)
        self._token = token
        self._token_expires = utcnow() + timedelta(seconds=expires_in)
        log_info("Google access token refreshed", event="media_library", expires_in=expires_in)
        return token

    # --------------------------------------------------------------- requests

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Authenticated JSON call through the circuit breaker.

        Transport errors, 429 and 5xx count as breaker failures. Other 4xx
        responses are raised as MediaLibraryError outside the breaker so a
        missing item does not look like an outage.
        """
        token = await self.get_access_token()
        url = f"{self.config.api_base_url}{path}"

        async def _send() -> httpx.Response:
            async with record_external_request(SERVICE_NAME):
                try:
                    response = await self._http.request(
                        method,
                        url,
                        json=json,
                        headers={"Authorization": f"Bearer {token}"},
                    )
                except httpx.HTTPError as e:
                    raise UpstreamUnavailableError(
                        f"{type(e).__name__}: {e}", operation=operation
                    ) from e
                if response.status_code >= 500 or response.status_code == 429:
                    raise UpstreamUnavailableError(
                        _error_message(response), response.status_code, operation
                    )
                return response

        try:
            response = await self._breaker.call(_send)
        except UpstreamUnavailableError as e:
            log_error(
                "Google Photos request failed",
                error_type=type(e).__name__,
                error_message=e.message,
                upstream_service=SERVICE_NAME,
                operation=operation,
                http_status=e.status_code,
                event="media_library",
            )
            raise

        if response.status_code >= 400:
            if response.status_code == 401:
                # Force a refresh on the next call
                self._token = None
            message = _error_message(response)
            log_warning(
                "Google Photos request rejected",
                error_message=message,
                upstream_service=SERVICE_NAME,
                operation=operation,
                http_status=response.status_code,
                event="media_library",
            )
            raise MediaLibraryError(message, response.status_code, operation)

        return response.json() if response.content else {}

    # ------------------------------------------------------------- operations

    async def create_album(self, title: str) -> ProviderAlbum:
        """Create an app-owned album. Not retried: a retry could create a duplicate."""
        data = await self._request(
            "POST", "/albums", "create_album", json={"album": {"title": title}}
        )
        album = ProviderAlbum.model_validate(data)
        log_info("Google album created", event="media_library", provider_album_id=album.id)
        return album

    async def mint_upload_session(self) -> UploadSession:
        """
        Authorization for direct raw uploads.

        Google has one shared upload endpoint; the bearer token is valid for
        any number of raw uploads until it expires.
        """
        token = await self.get_access_token()
        return UploadSession(
            endpoint=self.config.upload_url,
            authorization=token,
            expires_at=self._token_expires,
        )

    async def batch_create_items(
        self,
        album_id: str,
        items: List[NewMediaItem],
    ) -> List[BatchItemResult]:
        """
        Turn upload tokens into media items in one call.

        Results are positionally aligned with `items`; the provider does not
        echo filenames. A position with no mediaItem id is a per-item failure,
        not an error for the call.
        """
        body = {
            "albumId": album_id,
            "newMediaItems": [
                {
                    "description": item.description,
                    "simpleMediaItem": {
                        "fileName": item.filename,
                        "uploadToken": item.upload_token,
                    },
                }
                for item in items
            ],
        }
        data = await self._request("POST", "/mediaItems:batchCreate", "batch_create", json=body)
        raw_results = data.get("newMediaItemResults") or []

        results: List[BatchItemResult] = []
        for index, item in enumerate(items):
            raw = raw_results[index] if index < len(raw_results) else {}
            media = raw.get("mediaItem")
            media_item = (
                ProviderMediaItem.model_validate(media)
                if isinstance(media, dict) and media.get("id")
                else None
            )
            status = raw.get("status") or {}
            results.append(
                BatchItemResult(
                    upload_token=raw.get("uploadToken", item.upload_token),
                    provider_item_id=media_item.id if media_item else None,
                    status_message=status.get("message") or (None if raw else "No result returned"),
                    media_item=media_item,
                )
            )
        return results

    async def get_item(self, provider_item_id: str) -> ProviderMediaItem:
        """Fetch a media item; its baseUrl is fresh for roughly an hour."""
        data = await self._request("GET", f"/mediaItems/{provider_item_id}", "get_item")
        return ProviderMediaItem.model_validate(data)

    async def list_items_in_album(
        self,
        album_id: str,
        page_size: int = 50,
        page_token: Optional[str] = None,
    ) -> ProviderItemPage:
        body: dict[str, Any] = {
            "albumId": album_id,
            "pageSize": max(1, min(page_size, MAX_PAGE_SIZE)),
        }
        if page_token:
            body["pageToken"] = page_token
        data = await self._request("POST", "/mediaItems:search", "list_items", json=body)
        return ProviderItemPage.model_validate(data)
