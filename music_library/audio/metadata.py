"""Audio metadata extraction using mutagen.

Extracts title, artist, album, and the first embedded picture from an
in-memory audio blob.  Supports MP3/WAV/AIFF (ID3), OGG/FLAC (Vorbis comments
and picture blocks), and MP4/M4A atoms.
"""

import base64
import io
import logging
from dataclasses import dataclass

import mutagen
from mutagen.flac import Picture
from mutagen.mp4 import MP4, MP4Cover

from music_library.errors import InvalidInputError

logger = logging.getLogger(__name__)

ARTIST_SEPARATOR = ", "

# Tag key mappings per format family
_ID3_TAG_MAP: dict[str, str] = {
    "title": "TIT2",
    "artist": "TPE1",
    "album": "TALB",
}

_VORBIS_TAG_MAP: dict[str, str] = {
    "title": "title",
    "artist": "artist",
    "album": "album",
}

_MP4_TAG_MAP: dict[str, str] = {
    "title": "\xa9nam",
    "artist": "\xa9ART",
    "album": "\xa9alb",
}


@dataclass
class EmbeddedPicture:
    data: bytes
    mime: str


@dataclass
class TrackMetadata:
    """Container for extracted track metadata.

    ``extracted`` is False when the container could not be parsed; the text
    fields are then empty and the caller proceeds without metadata.
    """

    title: str = ""
    artist: str = ""
    album: str = ""
    picture: EmbeddedPicture | None = None
    extracted: bool = True


def is_audio_type(content_type: str | None) -> bool:
    return bool(content_type) and content_type.lower().startswith("audio/")


def _join(values: object) -> str:
    """Flatten a possibly multi-valued tag into one display string."""
    if values is None:
        return ""
    if isinstance(values, str):
        return values.strip()
    if isinstance(values, (list, tuple)):
        parts = [str(v).strip() for v in values if str(v).strip()]
        return ARTIST_SEPARATOR.join(parts)
    return str(values).strip()


def _first(values: object) -> str:
    if isinstance(values, (list, tuple)):
        return str(values[0]).strip() if values else ""
    return _join(values)


def _extract_tags_id3(tags: mutagen.Tags) -> dict[str, str]:
    """Extract metadata from ID3 tags (MP3, WAV, AIFF)."""
    result: dict[str, str] = {}
    for field_name, tag_key in _ID3_TAG_MAP.items():
        tag = tags.get(tag_key)
        # ID3 text frames have a .text list attribute
        texts = getattr(tag, "text", None) if tag is not None else None
        if field_name == "artist":
            result[field_name] = _join(texts)
        else:
            result[field_name] = _first(texts)
    return result


def _extract_tags_vorbis(tags: mutagen.Tags) -> dict[str, str]:
    """Extract metadata from Vorbis comments (OGG, FLAC)."""
    result: dict[str, str] = {}
    for field_name, tag_key in _VORBIS_TAG_MAP.items():
        values = tags.get(tag_key)
        result[field_name] = _join(values) if field_name == "artist" else _first(values)
    return result


def _extract_tags_mp4(tags: mutagen.Tags) -> dict[str, str]:
    """Extract metadata from MP4 atoms (M4A/AAC)."""
    result: dict[str, str] = {}
    for field_name, tag_key in _MP4_TAG_MAP.items():
        values = tags.get(tag_key)
        result[field_name] = _join(values) if field_name == "artist" else _first(values)
    return result


def _picture_id3(tags: mutagen.Tags) -> EmbeddedPicture | None:
    frames = tags.getall("APIC")
    if not frames:
        return None
    return EmbeddedPicture(data=bytes(frames[0].data), mime=frames[0].mime or "image/jpeg")


def _picture_mp4(tags: mutagen.Tags) -> EmbeddedPicture | None:
    covers = tags.get("covr")
    if not covers:
        return None
    cover = covers[0]
    is_png = getattr(cover, "imageformat", None) == MP4Cover.FORMAT_PNG
    return EmbeddedPicture(data=bytes(cover), mime="image/png" if is_png else "image/jpeg")


def _picture_vorbis(audio_file: mutagen.FileType) -> EmbeddedPicture | None:
    # FLAC keeps pictures in metadata blocks, OGG in base64 comments.
    pictures = getattr(audio_file, "pictures", None)
    if pictures:
        return EmbeddedPicture(data=pictures[0].data, mime=pictures[0].mime or "image/jpeg")

    tags = audio_file.tags
    encoded = tags.get("metadata_block_picture") if tags is not None else None
    if not encoded:
        return None
    try:
        picture = Picture(base64.b64decode(encoded[0]))
    except Exception:
        logger.warning("Ignoring malformed embedded picture block")
        return None
    return EmbeddedPicture(data=picture.data, mime=picture.mime or "image/jpeg")


def extract_metadata(
    data: bytes,
    content_type: str | None,
    filename: str | None = None,
) -> TrackMetadata:
    """Extract metadata from an in-memory audio blob using mutagen.

    Args:
        data: Raw file bytes.
        content_type: Declared media type; must be ``audio/*``.
        filename: Original file name, used by mutagen to disambiguate formats.

    Returns:
        TrackMetadata with available fields populated, or an empty
        TrackMetadata with ``extracted=False`` if the container is unreadable.

    Raises:
        InvalidInputError: if ``content_type`` is not an audio media type.
    """
    if not is_audio_type(content_type):
        raise InvalidInputError(f"Not an audio file: {filename or 'upload'} ({content_type})")

    fileobj = io.BytesIO(data)
    if filename:
        fileobj.name = filename

    try:
        audio_file = mutagen.File(fileobj)
    except Exception:
        logger.warning("mutagen could not parse file: %s", filename or "<blob>")
        return TrackMetadata(extracted=False)

    if audio_file is None:
        logger.warning("mutagen returned None for file: %s", filename or "<blob>")
        return TrackMetadata(extracted=False)

    meta = TrackMetadata()
    tags = audio_file.tags
    if tags is None:
        return meta

    if isinstance(audio_file, MP4):
        tag_data = _extract_tags_mp4(tags)
        meta.picture = _picture_mp4(tags)
    elif hasattr(tags, "getall"):
        # ID3 tags (MP3)
        tag_data = _extract_tags_id3(tags)
        meta.picture = _picture_id3(tags)
    else:
        # Vorbis-style comments (OGG, FLAC)
        tag_data = _extract_tags_vorbis(tags)
        meta.picture = _picture_vorbis(audio_file)

    meta.title = tag_data.get("title", "")
    meta.artist = tag_data.get("artist", "")
    meta.album = tag_data.get("album", "")
    return meta
