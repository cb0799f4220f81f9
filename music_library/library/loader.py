"""Incremental catalog loader driving infinite-scroll browsing.

Pages are fetched one at a time and merged into a growing list keyed by track
id.  The loading flag is the only thing preventing overlapping fetches, since
the scroll check is level-triggered and fires on every scroll event.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from music_library.errors import LibraryError
from music_library.gateway.base import DataStoreGateway
from music_library.schemas.pagination import MAX_PAGE_SIZE, CatalogPage
from music_library.schemas.track import TrackInfo
from music_library.settings import settings

logger = logging.getLogger(__name__)


def merge_tracks(existing: list[TrackInfo], incoming: Iterable[TrackInfo]) -> list[TrackInfo]:
    """Append tracks whose id is not already present, preserving order.

    Args:
        existing: Tracks already held by the client.
        incoming: Tracks from a newly fetched page, in server order.

    Returns:
        A new list; ``existing`` is left untouched.
    """
    seen = {track.id for track in existing}
    merged = list(existing)
    for track in incoming:
        if track.id in seen:
            continue
        seen.add(track.id)
        merged.append(track)
    return merged


def near_bottom(
    scroll_top: float,
    viewport_height: float,
    content_height: float,
    threshold: float,
) -> bool:
    """True when the viewport's bottom edge is within ``threshold`` of the content end."""
    return scroll_top + viewport_height >= content_height - threshold


class CatalogLoader:
    """Client-held, paginated view of the catalog (newest first)."""

    def __init__(
        self,
        gateway: DataStoreGateway,
        page_size: int | None = None,
        scroll_threshold: float | None = None,
    ) -> None:
        self.gateway = gateway
        self.page_size = min(page_size or settings.page_size, MAX_PAGE_SIZE)
        self.scroll_threshold = (
            settings.scroll_threshold if scroll_threshold is None else scroll_threshold
        )
        self.items: list[TrackInfo] = []
        self.cursor = 1
        self.has_more = True
        self.loading = False
        self.closed = False
        self.last_error: LibraryError | None = None

    async def load_next(self) -> bool:
        """Fetch the page at ``cursor`` and merge it into ``items``.

        Returns:
            True if a page was fetched and merged, False if the call was a
            no-op (already loading, exhausted, closed) or the fetch failed.
        """
        if self.loading or not self.has_more or self.closed:
            return False

        self.loading = True
        try:
            rows = await self.gateway.list_page(self.cursor, self.page_size)
        except LibraryError as exc:
            logger.error("Failed to load catalog page %d: %s", self.cursor, exc)
            self.last_error = exc
            return False
        finally:
            self.loading = False

        if self.closed:
            logger.debug("Discarding page %d received after close", self.cursor)
            return False

        page = CatalogPage(page=self.cursor, page_size=self.page_size, items=rows)
        if not page.has_more:
            self.has_more = False
        self.items = merge_tracks(self.items, page.items)
        self.cursor += 1
        self.last_error = None
        return True

    async def on_scroll(
        self,
        scroll_top: float,
        viewport_height: float,
        content_height: float,
    ) -> bool:
        """Scroll event hook; loads the next page when near the bottom."""
        if not near_bottom(scroll_top, viewport_height, content_height, self.scroll_threshold):
            return False
        return await self.load_next()

    def replace(self, tracks: Iterable[TrackInfo]) -> None:
        """Replace the list wholesale, e.g. with a search result set.

        Replacement sets are not paginated further.
        """
        self.items = merge_tracks([], tracks)
        self.cursor = len(self.items) // self.page_size + 1
        self.has_more = False

    def find(self, track_id: int) -> TrackInfo | None:
        return next((t for t in self.items if t.id == track_id), None)

    def remove(self, track_id: int) -> None:
        self.items = [t for t in self.items if t.id != track_id]

    def close(self) -> None:
        """Tear down; responses still in flight are discarded on arrival."""
        self.closed = True
