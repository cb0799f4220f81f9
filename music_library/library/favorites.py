"""Optimistic favorite toggling with rollback."""

from __future__ import annotations

import logging
from collections.abc import Callable

from music_library.errors import LibraryError, NotFoundError
from music_library.gateway.base import DataStoreGateway
from music_library.schemas.track import TrackInfo

logger = logging.getLogger(__name__)


class FavoriteToggler:
    """Flips the ``pin`` flag locally first, then persists it.

    ``tracks`` returns the list currently held by the client (typically a
    loader's ``items``); it is looked up on every call because the list is
    replaced as pages merge in.

    Toggles on the same id are not serialized against each other: the backend
    keeps whichever write lands last.
    """

    def __init__(
        self,
        gateway: DataStoreGateway,
        tracks: Callable[[], list[TrackInfo]],
    ) -> None:
        self.gateway = gateway
        self._tracks = tracks

    def _find(self, track_id: int) -> TrackInfo:
        for track in self._tracks():
            if track.id == track_id:
                return track
        raise NotFoundError(f"Track {track_id} is not loaded")

    async def toggle(self, track_id: int) -> int:
        """Flip the favorite flag of a loaded track.

        Returns:
            The new flag value.

        Raises:
            LibraryError: if persisting failed; the local flag has been
                restored to its previous value.
        """
        track = self._find(track_id)
        previous = track.favorite
        flipped = 0 if previous == 1 else 1
        track.favorite = flipped

        try:
            await self.gateway.update(track_id, {"pin": flipped})
        except LibraryError as exc:
            logger.error("Failed to update favorite for track %s: %s", track_id, exc)
            track.favorite = previous
            raise

        return flipped
