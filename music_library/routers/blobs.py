"""Blob endpoints: raw uploads/deletes for audio and art, plus public serving."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import FileResponse

from music_library.audio.storage import BlobKind, LocalBlobStore, media_type_for
from music_library.auth.admin import require_admin_key
from music_library.dependencies import get_blob_store, get_gateway
from music_library.errors import InvalidInputError, NotFoundError
from music_library.gateway.base import DataStoreGateway
from music_library.schemas.errors import ErrorResponse
from music_library.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["blobs"])
media_router = APIRouter(tags=["media"])


@router.put(
    "/blobs/{kind}/{name}",
    status_code=201,
    dependencies=[Depends(require_admin_key)],
)
async def put_blob(
    kind: BlobKind,
    name: str,
    request: Request,
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> dict[str, str]:
    """Store the raw request body as a blob and return its public locator."""
    data = await request.body()
    if not data:
        raise InvalidInputError("Empty blob body.")
    if len(data) > settings.max_upload_bytes:
        raise InvalidInputError(
            f"Blob too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)} MB."
        )

    content_type = request.headers.get("content-type", "application/octet-stream")
    locator = await gateway.put_blob(kind, data, content_type, name)
    return {"locator": locator}


@router.delete("/blobs", status_code=204, dependencies=[Depends(require_admin_key)])
async def delete_blob(
    locator: str = Query(...),
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> Response:
    """Delete a blob by locator. Deleting a missing blob succeeds."""
    await gateway.delete_blob(locator)
    return Response(status_code=204)


@media_router.get(
    "/media/{prefix}/{name}",
    response_model=None,
    responses={404: {"description": "Blob not found", "model": ErrorResponse}},
)
async def get_media(
    prefix: str,
    name: str,
    store: LocalBlobStore = Depends(get_blob_store),  # noqa: B008
) -> FileResponse:
    """Serve a stored blob.

    Starlette's FileResponse handles Range requests, so audio is seekable.
    """
    try:
        path = store.blob_path(prefix, name)
    except InvalidInputError as exc:
        logger.warning("Rejected media request %s/%s: %s", prefix, name, exc)
        raise NotFoundError("Blob not found") from exc

    if not path.is_file():
        raise NotFoundError("Blob not found")

    return FileResponse(
        path=path,
        media_type=media_type_for(name),
        content_disposition_type="inline",
    )
