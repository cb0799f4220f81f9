"""Gateway adapter that talks to a remote music library service over HTTP."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from music_library.audio.storage import BlobKind
from music_library.errors import (
    ConstraintError,
    InvalidInputError,
    LibraryError,
    NotFoundError,
    TransportError,
)
from music_library.gateway.base import DataStoreGateway
from music_library.schemas.track import TrackCreate, TrackInfo

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

_STATUS_ERRORS: dict[int, type[LibraryError]] = {
    400: InvalidInputError,
    404: NotFoundError,
    409: ConstraintError,
    422: InvalidInputError,
}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
        return str(body["error"]["message"])
    except (ValueError, KeyError, TypeError):
        return response.text or response.reason_phrase


class HttpGateway(DataStoreGateway):
    """Gateway over the service's REST API.

    The caller owns ``client`` (base URL, timeout, transport) and closes it.
    """

    def __init__(self, client: httpx.AsyncClient, admin_key: str = "") -> None:
        self._client = client
        self._admin_key = admin_key

    @classmethod
    def connect(cls, base_url: str, admin_key: str = "", timeout: float = 30.0) -> HttpGateway:
        return cls(httpx.AsyncClient(base_url=base_url, timeout=timeout), admin_key)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {"X-Admin-Key": self._admin_key} if self._admin_key else {}

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        try:
            response = await self._client.request(
                method, f"{API_PREFIX}{path}", headers=headers, **kwargs
            )
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            error_cls = _STATUS_ERRORS.get(response.status_code, TransportError)
            raise error_cls(_error_message(response))
        return response

    async def _tracks(self, path: str, params: Mapping[str, Any] | None = None) -> list[TrackInfo]:
        response = await self._request("GET", path, params=params)
        body = response.json()
        rows = body["data"] if isinstance(body, dict) else body
        return [TrackInfo.model_validate(row) for row in rows]

    async def list_page(
        self,
        page: int,
        limit: int,
        order_by: str = "id",
        descending: bool = True,
    ) -> list[TrackInfo]:
        params = {"page": page, "pageSize": limit, "orderBy": order_by, "descending": descending}
        return await self._tracks("/tracks", params)

    async def list_by_field(self, field: str, value: Any) -> list[TrackInfo]:
        return await self._tracks("/tracks/filter", {"field": field, "value": value})

    async def search_text(self, pattern: str) -> list[TrackInfo]:
        if not pattern or not pattern.strip():
            return []
        return await self._tracks("/tracks/search", {"q": pattern})

    async def find_by_title(self, title: str) -> TrackInfo:
        response = await self._request("GET", "/tracks/by-title", params={"title": title})
        return TrackInfo.model_validate(response.json())

    async def get(self, track_id: int) -> TrackInfo:
        response = await self._request("GET", f"/tracks/{track_id}")
        return TrackInfo.model_validate(response.json())

    async def list_artists(self) -> list[str]:
        response = await self._request("GET", "/artists")
        return list(response.json())

    async def insert(self, track: TrackCreate) -> TrackInfo:
        response = await self._request("POST", "/tracks", json=track.model_dump())
        return TrackInfo.model_validate(response.json())

    async def update(self, track_id: int, fields: Mapping[str, Any]) -> None:
        await self._request("PATCH", f"/tracks/{track_id}", json=dict(fields))

    async def delete(self, track_id: int) -> None:
        await self._request("DELETE", f"/tracks/{track_id}", params={"blobs": False})

    async def put_blob(self, kind: BlobKind, data: bytes, content_type: str, name: str) -> str:
        response = await self._request(
            "PUT",
            f"/blobs/{kind.value}/{name}",
            content=data,
            headers={"Content-Type": content_type},
        )
        return str(response.json()["locator"])

    async def delete_blob(self, locator: str) -> None:
        await self._request("DELETE", "/blobs", params={"locator": locator})
