"""Track catalog endpoints: paginated listing, search, filters, favorites, and deletion."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Response

from music_library.auth.admin import require_admin_key, verify_admin_key
from music_library.dependencies import get_gateway
from music_library.errors import InvalidInputError
from music_library.gateway.base import DataStoreGateway
from music_library.library.catalog import (
    delete_track,
    list_favorites,
    search_catalog,
    tracks_by_artist,
)
from music_library.schemas.errors import ErrorResponse
from music_library.schemas.pagination import (
    MAX_PAGE_SIZE,
    CatalogPage,
    PaginatedResponse,
    PaginationMeta,
)
from music_library.schemas.track import (
    TRACK_FIELDS,
    FavoriteResponse,
    TrackCreate,
    TrackInfo,
    TrackUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tracks"])

_INTEGER_FIELDS = {"id", "pin"}

# Fields anyone may change; everything else is a catalog edit.
_PUBLIC_UPDATE_FIELDS = {"pin"}

_NOT_FOUND = {404: {"description": "Track not found", "model": ErrorResponse}}


def _coerce_filter_value(field: str, value: str) -> Any:
    if field not in TRACK_FIELDS:
        raise InvalidInputError(f"Unknown track field: {field!r}")
    if field in _INTEGER_FIELDS:
        try:
            return int(value)
        except ValueError as exc:
            raise InvalidInputError(f"{field} must be an integer") from exc
    return value


@router.get(
    "/tracks",
    response_model=PaginatedResponse[TrackInfo],
    responses={422: {"description": "Validation error"}},
)
async def list_tracks(
    page: int = Query(default=1),
    pageSize: int = Query(default=10, alias="pageSize"),  # noqa: N803
    search: str | None = Query(default=None),
    orderBy: str = Query(default="id", alias="orderBy"),  # noqa: N803
    descending: bool = Query(default=True),
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> PaginatedResponse[TrackInfo]:
    """Return one page of tracks, newest first, optionally filtered by a search term."""
    # Clamp pagination parameters per API contract
    page = max(1, page)
    page_size = max(1, min(MAX_PAGE_SIZE, pageSize))

    if search:
        matches = await search_catalog(gateway, search)
        offset = (page - 1) * page_size
        rows = matches[offset : offset + page_size]
    else:
        rows = await gateway.list_page(page, page_size, order_by=orderBy, descending=descending)

    catalog_page = CatalogPage(page=page, page_size=page_size, items=rows)
    return PaginatedResponse[TrackInfo](
        data=catalog_page.items,
        pagination=PaginationMeta(
            page=page,
            page_size=page_size,
            has_more=catalog_page.has_more,
        ),
    )


@router.get("/tracks/search", response_model=list[TrackInfo])
async def search_tracks(
    q: str = Query(default=""),
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> list[TrackInfo]:
    """Case-insensitive match on title, album, or artist. Blank queries match nothing."""
    return await search_catalog(gateway, q)


@router.get("/tracks/filter", response_model=list[TrackInfo])
async def filter_tracks(
    field: str = Query(...),
    value: str = Query(...),
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> list[TrackInfo]:
    return await gateway.list_by_field(field, _coerce_filter_value(field, value))


@router.get("/tracks/by-title", response_model=TrackInfo, responses=_NOT_FOUND)
async def get_track_by_title(
    title: str = Query(...),
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> TrackInfo:
    return await gateway.find_by_title(title)


@router.get("/tracks/{track_id}", response_model=TrackInfo, responses=_NOT_FOUND)
async def get_track(
    track_id: int,
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> TrackInfo:
    return await gateway.get(track_id)


@router.post(
    "/tracks",
    response_model=TrackInfo,
    status_code=201,
    dependencies=[Depends(require_admin_key)],
)
async def create_track(
    body: TrackCreate,
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> TrackInfo:
    return await gateway.insert(body)


@router.patch("/tracks/{track_id}", response_model=TrackInfo, responses=_NOT_FOUND)
async def update_track(
    track_id: int,
    body: TrackUpdate,
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> TrackInfo:
    """Partially update a track.

    Changing the favorite flag is open to everyone; any other field requires
    the admin key.
    """
    fields = body.model_dump(exclude_unset=True)
    if set(fields) - _PUBLIC_UPDATE_FIELDS:
        verify_admin_key(x_admin_key)
    await gateway.update(track_id, fields)
    return await gateway.get(track_id)


@router.post("/tracks/{track_id}/favorite", response_model=FavoriteResponse, responses=_NOT_FOUND)
async def toggle_favorite(
    track_id: int,
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> FavoriteResponse:
    track = await gateway.get(track_id)
    flipped = 0 if track.favorite == 1 else 1
    await gateway.update(track_id, {"pin": flipped})
    return FavoriteResponse(id=track_id, pin=flipped)


@router.delete(
    "/tracks/{track_id}",
    status_code=204,
    responses=_NOT_FOUND,
    dependencies=[Depends(require_admin_key)],
)
async def remove_track(
    track_id: int,
    blobs: bool = Query(default=True),
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> Response:
    """Delete a track; by default its audio and cover blobs go with it."""
    if blobs:
        track = await gateway.get(track_id)
        await delete_track(gateway, track)
    else:
        await gateway.delete(track_id)
    return Response(status_code=204)


@router.get("/favorites", response_model=list[TrackInfo])
async def get_favorites(
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> list[TrackInfo]:
    return await list_favorites(gateway)


@router.get("/artists", response_model=list[str])
async def get_artists(
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> list[str]:
    return await gateway.list_artists()


@router.get("/artists/{artist}/tracks", response_model=list[TrackInfo])
async def get_artist_tracks(
    artist: str,
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> list[TrackInfo]:
    return await tracks_by_artist(gateway, artist)
