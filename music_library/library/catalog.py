"""Catalog-level operations composed from gateway calls."""

from __future__ import annotations

import logging

from music_library.gateway.base import DataStoreGateway
from music_library.schemas.track import TrackInfo

logger = logging.getLogger(__name__)


async def delete_track(gateway: DataStoreGateway, track: TrackInfo) -> None:
    """Delete a track together with its audio and cover blobs.

    Blobs go first so a failure never leaves a record pointing at nothing;
    blob deletion is idempotent, so retrying after a failed record delete is
    safe.
    """
    await gateway.delete_blob(track.audio_url)
    if track.cover_url:
        await gateway.delete_blob(track.cover_url)
    await gateway.delete(track.id)
    logger.info("Deleted track %s (%s) and its blobs", track.id, track.title)


async def search_catalog(gateway: DataStoreGateway, text: str) -> list[TrackInfo]:
    """Search title, album, and artist; blank input yields no results."""
    if not text or not text.strip():
        return []
    return await gateway.search_text(text.strip())


async def list_favorites(gateway: DataStoreGateway) -> list[TrackInfo]:
    return await gateway.list_by_field("pin", 1)


async def tracks_by_artist(gateway: DataStoreGateway, artist: str) -> list[TrackInfo]:
    return await gateway.list_by_field("artist", artist)
