"""Tests for the HTTP gateway against the service's own routers.

The "remote" service is the track and blob routers over SQLite, reached
in-process through httpx's ASGI transport.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from music_library.audio.storage import BlobKind
from music_library.dependencies import get_blob_store, get_gateway
from music_library.errors import InvalidInputError, NotFoundError, TransportError
from music_library.gateway.http import HttpGateway
from music_library.library.favorites import FavoriteToggler
from music_library.library.loader import CatalogLoader
from music_library.library.uploads import SourceFile, UploadSession
from music_library.routers import blobs, tracks
from music_library.routers.errors import install_exception_handlers
from music_library.schemas.track import TrackCreate

_TEST_ADMIN_KEY = "test-admin-key-12345"


@pytest.fixture(autouse=True)
def _admin_key():
    with patch("music_library.auth.admin.settings", MagicMock(admin_api_key=_TEST_ADMIN_KEY)):
        yield


@pytest.fixture
def remote_app(sql_gateway, blob_store) -> FastAPI:
    application = FastAPI()
    application.include_router(tracks.router, prefix="/api/v1")
    application.include_router(blobs.router, prefix="/api/v1")
    application.dependency_overrides[get_gateway] = lambda: sql_gateway
    application.dependency_overrides[get_blob_store] = lambda: blob_store
    install_exception_handlers(application)
    return application


@pytest.fixture
async def http_gateway(remote_app: FastAPI) -> HttpGateway:
    client = AsyncClient(transport=ASGITransport(app=remote_app), base_url="http://test")
    gateway = HttpGateway(client, admin_key=_TEST_ADMIN_KEY)
    yield gateway
    await gateway.aclose()


def _create(title: str, **fields) -> TrackCreate:
    return TrackCreate(title=title, music_url=f"http://test/media/music/{title}.mp3", **fields)


class TestTrackOperations:
    async def test_insert_and_get(self, http_gateway: HttpGateway) -> None:
        created = await http_gateway.insert(_create("Remote", artist="Far"))
        fetched = await http_gateway.get(created.id)
        assert fetched.title == "Remote"
        assert fetched.artist == "Far"
        assert fetched.audio_url.endswith("/music/Remote.mp3")

    async def test_list_page(self, http_gateway: HttpGateway) -> None:
        for i in range(5):
            await http_gateway.insert(_create(f"T{i}"))

        page = await http_gateway.list_page(1, 3)
        ascending = await http_gateway.list_page(1, 3, order_by="title", descending=False)

        assert [t.title for t in page] == ["T4", "T3", "T2"]
        assert [t.title for t in ascending] == ["T0", "T1", "T2"]

    async def test_queries(self, http_gateway: HttpGateway) -> None:
        await http_gateway.insert(_create("Blue", artist="Nova", pin=1))
        await http_gateway.insert(_create("Red", artist="Atlas"))

        assert [t.title for t in await http_gateway.search_text("blu")] == ["Blue"]
        assert await http_gateway.search_text(" ") == []
        assert [t.title for t in await http_gateway.list_by_field("pin", 1)] == ["Blue"]
        assert (await http_gateway.find_by_title("Red")).artist == "Atlas"
        assert await http_gateway.list_artists() == ["Atlas", "Nova"]

    async def test_update_and_delete(self, http_gateway: HttpGateway) -> None:
        track = await http_gateway.insert(_create("Edit"))

        await http_gateway.update(track.id, {"pin": 1, "album": "Later"})
        updated = await http_gateway.get(track.id)
        assert updated.favorite == 1
        assert updated.album == "Later"

        await http_gateway.delete(track.id)
        with pytest.raises(NotFoundError):
            await http_gateway.get(track.id)

    async def test_error_mapping(self, http_gateway: HttpGateway) -> None:
        with pytest.raises(NotFoundError):
            await http_gateway.find_by_title("missing")
        with pytest.raises(NotFoundError):
            await http_gateway.delete(12345)
        with pytest.raises(InvalidInputError):
            await http_gateway.list_by_field("genre", "jazz")

    async def test_blobs(self, http_gateway: HttpGateway, blob_store) -> None:
        locator = await http_gateway.put_blob(BlobKind.AUDIO, b"bytes", "audio/mpeg", "r.mp3")
        path = blob_store.path_for_locator(locator)
        assert path.read_bytes() == b"bytes"

        await http_gateway.delete_blob(locator)
        assert not path.exists()


async def test_network_failure_is_transport_error() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://test")
    gateway = HttpGateway(client)
    try:
        with pytest.raises(TransportError):
            await gateway.list_page(1, 10)
    finally:
        await gateway.aclose()


async def test_server_error_is_transport_error() -> None:
    client = AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway")),
        base_url="http://test",
    )
    gateway = HttpGateway(client)
    try:
        with pytest.raises(TransportError, match="bad gateway"):
            await gateway.get(1)
    finally:
        await gateway.aclose()


class TestCoordinatorsOverHttp:
    async def test_upload_then_browse_and_favorite(self, http_gateway: HttpGateway, make_wav):
        session = UploadSession(http_gateway)
        report = await session.stage(
            [
                SourceFile("a.wav", "audio/wav", make_wav(title="First")),
                SourceFile("b.wav", "audio/wav", make_wav(title="Second")),
            ]
        )
        assert report.staged == 2
        assert (await session.commit()).committed == 2

        loader = CatalogLoader(http_gateway, page_size=10)
        await loader.load_next()
        assert [t.title for t in loader.items] == ["Second", "First"]
        assert loader.has_more is False

        toggler = FavoriteToggler(http_gateway, lambda: loader.items)
        first_id = loader.items[1].id
        assert await toggler.toggle(first_id) == 1
        assert (await http_gateway.get(first_id)).favorite == 1
