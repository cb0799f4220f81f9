"""Now-playing notification.

Anything process-wide that reflects the current track (window title, icon,
media-session metadata) sits behind :class:`NowPlayingNotifier`, so the queue
itself never touches global state.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from music_library.schemas.track import TrackInfo

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Music Library"
DEFAULT_ICON = "favicon.ico"


class NowPlayingNotifier(ABC):
    @abstractmethod
    def set_now_playing(self, track: TrackInfo) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...


class LoggingNotifier(NowPlayingNotifier):
    def set_now_playing(self, track: TrackInfo) -> None:
        logger.info("Now playing: %s - %s", track.artist or "Unknown artist", track.title)

    def clear(self) -> None:
        logger.info("Playback stopped")


class NowPlayingState(NowPlayingNotifier):
    """Holds the page title and icon a presentation layer should show."""

    def __init__(self) -> None:
        self.track: TrackInfo | None = None
        self.title = DEFAULT_TITLE
        self.icon_url = DEFAULT_ICON

    def set_now_playing(self, track: TrackInfo) -> None:
        self.track = track
        self.title = f"Playing: {track.title}"
        self.icon_url = track.cover_url or DEFAULT_ICON

    def clear(self) -> None:
        self.track = None
        self.title = DEFAULT_TITLE
        self.icon_url = DEFAULT_ICON
