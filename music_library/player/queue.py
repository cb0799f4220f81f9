"""Ordered play queue that stops at either end of the visible list."""

from __future__ import annotations

from collections.abc import Callable

from music_library.errors import NotFoundError
from music_library.player.now_playing import NowPlayingNotifier
from music_library.schemas.track import TrackInfo


class PlayerQueue:
    """Plays through the list the user is currently looking at.

    ``tracks`` is re-read on every navigation so the queue follows the
    visible list as pages load or a search replaces it.
    """

    def __init__(
        self,
        tracks: Callable[[], list[TrackInfo]],
        notifier: NowPlayingNotifier,
    ) -> None:
        self._tracks = tracks
        self.notifier = notifier
        self.current: TrackInfo | None = None

    def _index(self) -> int | None:
        if self.current is None:
            return None
        for i, track in enumerate(self._tracks()):
            if track.id == self.current.id:
                return i
        return None

    def _start(self, track: TrackInfo) -> TrackInfo:
        self.current = track
        self.notifier.set_now_playing(track)
        return track

    def play(self, track_id: int) -> TrackInfo:
        for track in self._tracks():
            if track.id == track_id:
                return self._start(track)
        raise NotFoundError(f"Track {track_id} is not in the queue")

    def _step(self, offset: int) -> TrackInfo | None:
        tracks = self._tracks()
        if not tracks:
            self.stop()
            return None
        index = self._index()
        if index is None:
            # Current track vanished from the list; restart from the top.
            return self._start(tracks[0])
        target = index + offset
        if not 0 <= target < len(tracks):
            # At an end of the list; the current track stays selected.
            return None
        return self._start(tracks[target])

    def next(self) -> TrackInfo | None:
        return self._step(1)

    def previous(self) -> TrackInfo | None:
        return self._step(-1)

    def on_ended(self) -> TrackInfo | None:
        """Auto-advance when the current track finishes.

        Returns ``None`` after the last track, leaving it selected.
        """
        return self.next()

    def stop(self) -> None:
        self.current = None
        self.notifier.clear()
