"""Shared fixtures: an in-memory gateway, a SQLite-backed gateway, and audio builders."""

from __future__ import annotations

import asyncio
import base64
import math
import struct
import wave
from collections import Counter
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pytest
from mutagen.flac import FLAC, Picture
from mutagen.id3 import APIC, TALB, TIT2, TPE1
from mutagen.mp4 import MP4, MP4Cover
from mutagen.wave import WAVE
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from music_library.audio.storage import BlobKind, LocalBlobStore
from music_library.errors import InvalidInputError, NotFoundError
from music_library.gateway.base import DataStoreGateway
from music_library.gateway.sql import SqlGateway
from music_library.models import Base
from music_library.schemas.track import TRACK_FIELDS, TrackCreate, TrackInfo

PUBLIC_BASE_URL = "http://test/media"

# Minimal PNG signature; nothing decodes image bytes.
FAKE_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


# ---------------------------------------------------------------------------
# In-memory gateway
# ---------------------------------------------------------------------------


class FakeGateway(DataStoreGateway):
    """Dictionary-backed gateway with injectable failures and gates.

    ``fail_on("put_blob", exc, call=2)`` makes the second put_blob call raise;
    ``call=None`` fails every call.  Setting ``gates[name]`` to an
    ``asyncio.Event`` makes that method wait for the event before proceeding.
    """

    def __init__(self) -> None:
        self.rows: dict[int, TrackInfo] = {}
        self.blobs: dict[str, bytes] = {}
        self.calls: Counter[str] = Counter()
        self.gates: dict[str, asyncio.Event] = {}
        self._failures: dict[str, tuple[Exception, int | None]] = {}
        self._next_id = 1

    def fail_on(self, method: str, exc: Exception, call: int | None = None) -> None:
        self._failures[method] = (exc, call)

    async def _enter(self, method: str) -> None:
        self.calls[method] += 1
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        failure = self._failures.get(method)
        if failure is not None:
            exc, call = failure
            if call is None or call == self.calls[method]:
                raise exc

    def seed(self, count: int, **fields: Any) -> list[TrackInfo]:
        created = []
        for _ in range(count):
            track_id = self._next_id
            self._next_id += 1
            track = TrackInfo(
                id=track_id,
                title=fields.get("title", f"Song {track_id}"),
                artist=fields.get("artist", f"Artist {track_id % 3}"),
                album=fields.get("album", ""),
                music_url=f"{PUBLIC_BASE_URL}/music/{track_id}.mp3",
                cover_url=fields.get("cover_url"),
                pin=fields.get("pin", 0),
            )
            self.rows[track_id] = track
            created.append(track)
        return created

    def _ordered(self) -> list[TrackInfo]:
        return sorted(self.rows.values(), key=lambda t: t.id, reverse=True)

    async def list_page(
        self,
        page: int,
        limit: int,
        order_by: str = "id",
        descending: bool = True,
    ) -> list[TrackInfo]:
        await self._enter("list_page")
        offset = (page - 1) * limit
        return [t.model_copy() for t in self._ordered()[offset : offset + limit]]

    async def list_by_field(self, field: str, value: Any) -> list[TrackInfo]:
        await self._enter("list_by_field")
        if field not in TRACK_FIELDS:
            raise InvalidInputError(field)
        return [t for t in self._ordered() if t.model_dump(by_alias=True)[field] == value]

    async def search_text(self, pattern: str) -> list[TrackInfo]:
        await self._enter("search_text")
        if not pattern.strip():
            return []
        needle = pattern.lower()
        return [
            t
            for t in self._ordered()
            if needle in t.title.lower() or needle in t.album.lower() or needle in t.artist.lower()
        ]

    async def find_by_title(self, title: str) -> TrackInfo:
        await self._enter("find_by_title")
        for track in self._ordered():
            if track.title == title:
                return track
        raise NotFoundError(title)

    async def get(self, track_id: int) -> TrackInfo:
        await self._enter("get")
        if track_id not in self.rows:
            raise NotFoundError(str(track_id))
        return self.rows[track_id]

    async def list_artists(self) -> list[str]:
        await self._enter("list_artists")
        return sorted({t.artist for t in self.rows.values() if t.artist})

    async def insert(self, track: TrackCreate) -> TrackInfo:
        await self._enter("insert")
        row = TrackInfo(id=self._next_id, **track.model_dump())
        self._next_id += 1
        self.rows[row.id] = row
        return row

    async def update(self, track_id: int, fields: Mapping[str, Any]) -> None:
        await self._enter("update")
        if track_id not in self.rows:
            raise NotFoundError(str(track_id))
        data = self.rows[track_id].model_dump(by_alias=True)
        data.update(fields)
        self.rows[track_id] = TrackInfo.model_validate(data)

    async def delete(self, track_id: int) -> None:
        await self._enter("delete")
        if self.rows.pop(track_id, None) is None:
            raise NotFoundError(str(track_id))

    async def put_blob(self, kind: BlobKind, data: bytes, content_type: str, name: str) -> str:
        await self._enter("put_blob")
        locator = f"{PUBLIC_BASE_URL}/{kind.prefix}/{name}"
        self.blobs[locator] = data
        return locator

    async def delete_blob(self, locator: str) -> None:
        await self._enter("delete_blob")
        self.blobs.pop(locator, None)


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


# ---------------------------------------------------------------------------
# SQLite-backed gateway
# ---------------------------------------------------------------------------


@pytest.fixture
async def session_factory():
    """In-memory SQLite session factory with the schema created."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "storage", PUBLIC_BASE_URL)


@pytest.fixture
def sql_gateway(session_factory, blob_store: LocalBlobStore) -> SqlGateway:
    return SqlGateway(session_factory, blob_store)


# ---------------------------------------------------------------------------
# Audio builders
# ---------------------------------------------------------------------------


def _write_wav(path: Path, duration_seconds: float = 0.1, sample_rate: int = 8000) -> None:
    """Write a short mono sine-wave WAV file."""
    num_frames = int(sample_rate * duration_seconds)
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)

        frames = bytearray()
        for i in range(num_frames):
            sample = int(16000 * math.sin(2 * math.pi * 440 * i / sample_rate))
            frames.extend(struct.pack("<h", sample))

        wf.writeframes(bytes(frames))


@pytest.fixture
def make_wav(tmp_path: Path):
    """Factory building WAV bytes, optionally carrying ID3 tags and a cover."""
    counter = 0

    def _make(
        title: str | None = None,
        artists: list[str] | None = None,
        album: str | None = None,
        picture: bytes | None = None,
    ) -> bytes:
        nonlocal counter
        counter += 1
        path = tmp_path / f"track-{counter}.wav"
        _write_wav(path)

        if title or artists or album or picture:
            audio = WAVE(str(path))
            audio.add_tags()
            if title:
                audio.tags.add(TIT2(encoding=3, text=[title]))
            if artists:
                audio.tags.add(TPE1(encoding=3, text=artists))
            if album:
                audio.tags.add(TALB(encoding=3, text=[album]))
            if picture:
                audio.tags.add(
                    APIC(encoding=3, mime="image/png", type=3, desc="Cover", data=picture)
                )
            audio.save()

        return path.read_bytes()

    return _make


@pytest.fixture
def fake_png() -> bytes:
    return FAKE_PNG


def _write_flac(path: Path, sample_rate: int = 44100) -> None:
    """Write a FLAC stream holding only a STREAMINFO block and no frames."""
    # 20-bit sample rate, 3-bit channels-1, 5-bit bits-per-sample-1, 36-bit sample count
    packed = (sample_rate << 44) | (1 << 41) | (15 << 36)
    streaminfo = struct.pack(">HH", 4096, 4096) + bytes(6) + packed.to_bytes(8, "big") + bytes(16)
    header = bytes([0x80]) + len(streaminfo).to_bytes(3, "big")
    path.write_bytes(b"fLaC" + header + streaminfo)


def _write_m4a(path: Path) -> None:
    """Write an MP4 container with an ``ftyp`` atom and an empty ``moov``."""
    brands = b"M4A " + bytes(4) + b"M4A mp42isom"
    ftyp = struct.pack(">I", 8 + len(brands)) + b"ftyp" + brands
    moov = struct.pack(">I", 8) + b"moov"
    path.write_bytes(ftyp + moov)


def _flac_picture(data: bytes, mime: str) -> Picture:
    picture = Picture()
    picture.type = 3
    picture.mime = mime
    picture.desc = "Cover"
    picture.data = data
    return picture


@pytest.fixture
def make_flac(tmp_path: Path):
    """Factory building FLAC bytes with Vorbis comments.

    ``picture_block=True`` stores the cover in a FLAC picture block; otherwise
    it goes into a base64 ``metadata_block_picture`` comment as Ogg files do.
    """
    counter = 0

    def _make(
        title: str | None = None,
        artists: list[str] | None = None,
        album: str | None = None,
        picture: bytes | None = None,
        picture_mime: str = "image/png",
        picture_block: bool = True,
    ) -> bytes:
        nonlocal counter
        counter += 1
        path = tmp_path / f"track-{counter}.flac"
        _write_flac(path)

        audio = FLAC(str(path))
        audio.add_tags()
        if title:
            audio["title"] = title
        if artists:
            audio["artist"] = artists
        if album:
            audio["album"] = album
        if picture:
            cover = _flac_picture(picture, picture_mime)
            if picture_block:
                audio.add_picture(cover)
            else:
                audio["metadata_block_picture"] = base64.b64encode(cover.write()).decode("ascii")
        audio.save()

        return path.read_bytes()

    return _make


@pytest.fixture
def make_m4a(tmp_path: Path):
    """Factory building M4A bytes carrying iTunes-style atoms."""
    counter = 0

    def _make(
        title: str | None = None,
        artists: list[str] | None = None,
        album: str | None = None,
        picture: bytes | None = None,
        picture_format: int = MP4Cover.FORMAT_PNG,
    ) -> bytes:
        nonlocal counter
        counter += 1
        path = tmp_path / f"track-{counter}.m4a"
        _write_m4a(path)

        audio = MP4(str(path))
        audio.add_tags()
        if title:
            audio["\xa9nam"] = [title]
        if artists:
            audio["\xa9ART"] = artists
        if album:
            audio["\xa9alb"] = [album]
        if picture:
            audio["covr"] = [MP4Cover(picture, imageformat=picture_format)]
        audio.save()

        return path.read_bytes()

    return _make
