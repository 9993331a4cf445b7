"""
Thin async client for the Wedding Photos API.
"""
from typing import Any, Dict, List, Optional, Sequence

import httpx

from wedding_photos.errors import ApiRequestError
from wedding_photos.schemas.album import AlbumListResponse
from wedding_photos.schemas.media import DownloadUrlResponse, MediaItemPage
from wedding_photos.schemas.upload import (
    FileDescriptor,
    FinalizeUploadRequest,
    FinalizeUploadResponse,
    NegotiateUploadRequest,
    NegotiateUploadResponse,
    UploadTokenEntry,
)

DEFAULT_API_TIMEOUT = 30.0


class WeddingPhotosClient:
    """
    Calls the API with a Bearer access token.

    Usage:
        async with WeddingPhotosClient("https://api.example.com", token) as api:
            negotiated = await api.negotiate(descriptors)
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_API_TIMEOUT,
    ):
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {access_token}"}

    async def __aenter__(self) -> "WeddingPhotosClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        response = await self._http.request(
            method, f"{self._base_url}{path}", headers=self._headers, **kwargs
        )
        if not response.is_success:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text[:200]
            raise ApiRequestError(response.status_code, detail)
        return response.json()

    async def negotiate(self, files: Sequence[FileDescriptor]) -> NegotiateUploadResponse:
        body = NegotiateUploadRequest(files=list(files))
        data = await self._call("POST", "/uploads/negotiate", json=body.model_dump(by_alias=True))
        return NegotiateUploadResponse.model_validate(data)

    async def finalize(
        self,
        album_id: str,
        tokens: Sequence[UploadTokenEntry],
        description: Optional[str] = None,
    ) -> FinalizeUploadResponse:
        body = FinalizeUploadRequest(tokens=list(tokens), album_id=album_id, description=description)
        data = await self._call(
            "POST", "/uploads/finalize", json=body.model_dump(by_alias=True, exclude_none=True)
        )
        return FinalizeUploadResponse.model_validate(data)

    async def list_albums(self, page: int = 1, page_size: int = 20) -> AlbumListResponse:
        data = await self._call("GET", "/albums", params={"page": page, "pageSize": page_size})
        return AlbumListResponse.model_validate(data)

    async def list_album_items(
        self, album_id: str, page: int = 1, page_size: int = 20
    ) -> MediaItemPage:
        data = await self._call(
            "GET", f"/albums/{album_id}/items", params={"page": page, "pageSize": page_size}
        )
        return MediaItemPage.model_validate(data)

    async def get_download_url(self, item_id: int) -> DownloadUrlResponse:
        data = await self._call("GET", f"/media/{item_id}/download-url")
        return DownloadUrlResponse.model_validate(data)

    async def get_download_urls(self, item_ids: List[int]) -> Dict[str, Any]:
        return await self._call("POST", "/media/download-urls", json={"mediaItemIds": item_ids})
