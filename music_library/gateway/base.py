"""Abstract data-store gateway.

Library coordinators (loader, upload pipeline, favorite toggler) depend only
on this interface; one concrete adapter exists per backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from music_library.audio.storage import BlobKind
from music_library.schemas.track import TrackCreate, TrackInfo


class DataStoreGateway(ABC):
    """Typed access to the track collection and the blob store.

    Every call reaches the backend; nothing is cached.  Failures surface as
    :class:`~music_library.errors.LibraryError` subclasses.
    """

    @abstractmethod
    async def list_page(
        self,
        page: int,
        limit: int,
        order_by: str = "id",
        descending: bool = True,
    ) -> list[TrackInfo]:
        """Return one 1-based page of tracks, newest first by default."""

    @abstractmethod
    async def list_by_field(self, field: str, value: Any) -> list[TrackInfo]:
        """Return all tracks whose ``field`` equals ``value``, newest first."""

    @abstractmethod
    async def search_text(self, pattern: str) -> list[TrackInfo]:
        """Case-insensitive substring match on title, album, or artist.

        An empty pattern matches nothing.
        """

    @abstractmethod
    async def find_by_title(self, title: str) -> TrackInfo:
        """Return a track with exactly this title or raise ``NotFoundError``."""

    @abstractmethod
    async def get(self, track_id: int) -> TrackInfo:
        """Return a track by id or raise ``NotFoundError``."""

    @abstractmethod
    async def list_artists(self) -> list[str]:
        """Return the distinct, non-empty artist strings in the catalog."""

    @abstractmethod
    async def insert(self, track: TrackCreate) -> TrackInfo:
        """Insert a track; the backend assigns the id."""

    @abstractmethod
    async def update(self, track_id: int, fields: Mapping[str, Any]) -> None:
        """Apply a partial update or raise ``NotFoundError``."""

    @abstractmethod
    async def delete(self, track_id: int) -> None:
        """Delete a track record (not its blobs) or raise ``NotFoundError``."""

    @abstractmethod
    async def put_blob(self, kind: BlobKind, data: bytes, content_type: str, name: str) -> str:
        """Store a blob and return its public locator."""

    @abstractmethod
    async def delete_blob(self, locator: str) -> None:
        """Delete a blob; deleting a missing blob is not an error."""
