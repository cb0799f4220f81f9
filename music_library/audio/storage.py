"""Filesystem blob storage for audio files and album art.

Blobs are stored at ``{storage_root}/{prefix}/{name}`` where ``prefix`` is
``music`` for audio and ``album-art`` for cover images.  Every stored blob is
addressed by a public locator ``{public_base_url}/{prefix}/{name}``.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import time
import uuid
from enum import StrEnum
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from music_library.errors import InvalidInputError, TransportError
from music_library.settings import settings

logger = logging.getLogger(__name__)


class BlobKind(StrEnum):
    AUDIO = "audio"
    ART = "art"

    @property
    def prefix(self) -> str:
        return _KIND_PREFIXES[self]


_KIND_PREFIXES: dict[BlobKind, str] = {
    BlobKind.AUDIO: "music",
    BlobKind.ART: "album-art",
}

BLOB_PREFIXES: frozenset[str] = frozenset(_KIND_PREFIXES.values())


def generate_blob_name(extension: str) -> str:
    """Generate a unique blob file name.

    Args:
        extension: File extension with or without leading dot.

    Returns:
        Name of the form ``{millis}-{random}.{ext}``.
    """
    ext = extension.lstrip(".").lower() or "bin"
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}.{ext}"


def extension_for(filename: str | None, content_type: str | None) -> str:
    """Pick a file extension from the file name, falling back to the media type."""
    if filename:
        suffix = PurePosixPath(filename).suffix.lstrip(".")
        if suffix:
            return suffix.lower()
    if content_type:
        # "image/jpeg" -> "jpeg", "audio/mpeg" -> "mpeg"
        subtype = content_type.split(";", 1)[0].split("/", 1)[-1].strip()
        if subtype:
            return subtype.lower()
    return "bin"


def media_type_for(name: str) -> str:
    """Guess the media type to serve a stored blob with."""
    guessed, _ = mimetypes.guess_type(name)
    return guessed or "application/octet-stream"


def _validate_name(name: str) -> str:
    if not name or "/" in name or "\\" in name or name in {".", ".."}:
        raise InvalidInputError(f"Invalid blob name: {name!r}")
    return name


class LocalBlobStore:
    """Blob store backed by a local directory tree."""

    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_settings(cls) -> LocalBlobStore:
        return cls(settings.storage_root, settings.public_base_url)

    def blob_path(self, prefix: str, name: str) -> Path:
        """Return the on-disk path for a blob, rejecting anything outside the root."""
        if prefix not in BLOB_PREFIXES:
            raise InvalidInputError(f"Unknown blob prefix: {prefix!r}")
        path = self.root / prefix / _validate_name(name)
        storage_root = self.root.resolve()
        if not path.resolve().is_relative_to(storage_root):
            raise InvalidInputError(f"Blob path escapes storage root: {name!r}")
        return path

    def locator_for(self, kind: BlobKind, name: str) -> str:
        return f"{self.public_base_url}/{kind.prefix}/{_validate_name(name)}"

    def path_for_locator(self, locator: str) -> Path:
        """Resolve a public locator back to its on-disk path.

        Only the last two path segments (``{prefix}/{name}``) are significant,
        so locators keep resolving if the public base URL changes.
        """
        segments = [s for s in urlsplit(locator).path.split("/") if s]
        if len(segments) < 2:
            raise InvalidInputError(f"Unrecognized blob locator: {locator!r}")
        prefix, name = segments[-2], segments[-1]
        return self.blob_path(prefix, name)

    async def put(self, kind: BlobKind, data: bytes, content_type: str, name: str) -> str:
        """Write a blob and return its public locator.

        Raises:
            TransportError: if the blob could not be written.
        """
        path = self.blob_path(kind.prefix, name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as exc:
            logger.error("Failed to write blob %s: %s", path, exc)
            raise TransportError(f"Could not store blob {name}: {exc}") from exc

        logger.debug("Stored %s blob %s (%d bytes, %s)", kind, name, len(data), content_type)
        return self.locator_for(kind, name)

    async def delete(self, locator: str) -> None:
        """Delete the blob behind ``locator``.

        Missing blobs and locators that do not point into this store (e.g. a
        track created with an external URL) are ignored.
        """
        try:
            path = self.path_for_locator(locator)
        except InvalidInputError:
            logger.warning("Not deleting %s: not a blob in this store", locator)
            return
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as exc:
            raise TransportError(f"Could not delete blob {locator}: {exc}") from exc
