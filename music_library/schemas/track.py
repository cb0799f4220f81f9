from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# Wire column names accepted by field filters and partial updates.
TRACK_FIELDS: frozenset[str] = frozenset(
    {"id", "title", "artist", "album", "music_url", "cover_url", "pin"}
)


class TrackInfo(BaseModel):
    """A catalog entry as exchanged with the data store.

    Serialized with the wire names (``music_url``, ``pin``); the Python
    attributes use the catalog vocabulary (``audio_url``, ``favorite``).
    """

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    title: str = ""
    artist: str = ""
    album: str = ""
    audio_url: str = Field(alias="music_url")
    cover_url: str | None = None
    favorite: int = Field(default=0, alias="pin", ge=0, le=1)


class TrackCreate(BaseModel):
    """Fields for a new track record; the id is assigned by the backend."""

    title: str = ""
    artist: str = ""
    album: str = ""
    music_url: str
    cover_url: str | None = None
    pin: int = Field(default=0, ge=0, le=1)


class TrackUpdate(BaseModel):
    """Partial update; only fields explicitly set are written."""

    title: str | None = None
    artist: str | None = None
    album: str | None = None
    music_url: str | None = None
    cover_url: str | None = None
    pin: int | None = Field(default=None, ge=0, le=1)


class FavoriteResponse(BaseModel):
    id: int
    pin: int
