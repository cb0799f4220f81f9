"""Two-phase upload pipeline: stage files for review, then commit them.

Staging extracts metadata, skips titles that already exist, and uploads any
embedded cover art.  Committing uploads the audio and inserts the track
record.  Both phases process files strictly one at a time so that file N's
side effects are complete before file N+1 starts.

Failure policy:
- Per-file problems (not audio, unreadable, art upload failed, record insert
  failed) are recorded and the batch continues.
- A failed duplicate check or a failed audio upload stops the batch; the
  report carries the blocking error.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from music_library.audio.metadata import EmbeddedPicture, extract_metadata
from music_library.audio.storage import BlobKind, extension_for, generate_blob_name
from music_library.errors import ConstraintError, InvalidInputError, LibraryError, NotFoundError
from music_library.gateway.base import DataStoreGateway
from music_library.schemas.track import TrackCreate, TrackInfo
from music_library.schemas.upload import StageStatus

logger = logging.getLogger(__name__)


@dataclass
class SourceFile:
    """A raw file handed to the pipeline."""

    filename: str
    content_type: str | None
    data: bytes


@dataclass
class PendingUpload:
    """A staged file awaiting commit."""

    source: SourceFile
    title: str
    artist: str = ""
    album: str = ""
    cover_url: str | None = None

    @property
    def display_title(self) -> str:
        return self.title or self.source.filename


@dataclass
class StageResult:
    file: str
    status: StageStatus = StageStatus.SKIPPED
    error: str | None = None


@dataclass
class StageReport:
    """Summary of a staging run."""

    total_files: int = 0
    staged: int = 0
    duplicates: int = 0
    rejected: int = 0
    skipped: int = 0
    error: str | None = None
    results: list[StageResult] = field(default_factory=list)

    def record(self, result: StageResult) -> None:
        self.results.append(result)
        if result.status == StageStatus.STAGED:
            self.staged += 1
        elif result.status == StageStatus.DUPLICATE:
            self.duplicates += 1
        elif result.status == StageStatus.REJECTED:
            self.rejected += 1
        else:
            self.skipped += 1


@dataclass
class CommitFailure:
    file: str
    error: str


@dataclass
class CommitReport:
    """Summary of a commit run."""

    total: int = 0
    committed: int = 0
    failed: list[CommitFailure] = field(default_factory=list)
    error: str | None = None
    tracks: list[TrackInfo] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return self.error is not None


def _stem(filename: str) -> str:
    return PurePosixPath(filename).stem or filename


class UploadSession:
    """Holds the files staged during one add-music session."""

    def __init__(self, gateway: DataStoreGateway) -> None:
        self.gateway = gateway
        self.pending: list[PendingUpload] = []
        self.created_at = time.monotonic()
        self.committing = False

    async def stage(self, files: Iterable[SourceFile]) -> StageReport:
        """Stage files one at a time.

        Args:
            files: Files in the order they were selected.

        Returns:
            StageReport with per-file outcomes.  ``error`` is set if a
            duplicate check failed and the remaining files were not examined.
        """
        sources = list(files)
        report = StageReport(total_files=len(sources))

        for i, source in enumerate(sources, 1):
            logger.info("[%d/%d] Staging: %s", i, len(sources), source.filename)
            try:
                result = await self._stage_file(source)
            except LibraryError as exc:
                logger.error(
                    "Duplicate check failed for %s; aborting remaining %d file(s): %s",
                    source.filename,
                    len(sources) - i + 1,
                    exc,
                )
                report.error = f"Error checking existing music: {exc.message}"
                break
            report.record(result)

        logger.info(
            "Staging complete: %d staged, %d duplicates, %d rejected, %d skipped (of %d total)",
            report.staged,
            report.duplicates,
            report.rejected,
            report.skipped,
            report.total_files,
        )
        return report

    async def _stage_file(self, source: SourceFile) -> StageResult:
        result = StageResult(file=source.filename)

        # Step 1+2: validate media type and extract metadata
        try:
            metadata = await asyncio.to_thread(
                extract_metadata, source.data, source.content_type, source.filename
            )
        except InvalidInputError as exc:
            result.status = StageStatus.REJECTED
            result.error = exc.message
            logger.warning("Rejected %s: %s", source.filename, exc.message)
            return result
        except Exception as exc:
            result.status = StageStatus.SKIPPED
            result.error = f"Metadata extraction failed: {exc}"
            logger.warning("Error extracting metadata from %s: %s", source.filename, exc)
            return result

        if not metadata.extracted:
            logger.info("No readable metadata in %s; staging with empty fields", source.filename)

        title = metadata.title or _stem(source.filename)

        # Step 3: duplicate check (failures other than "not found" propagate)
        if await self._is_duplicate(title):
            result.status = StageStatus.DUPLICATE
            logger.warning("Skipping %s: a track titled %r already exists", source.filename, title)
            return result

        pending = PendingUpload(
            source=source,
            title=title,
            artist=metadata.artist,
            album=metadata.album,
        )

        # Step 4: cover art (non-fatal)
        if metadata.picture is not None:
            pending.cover_url = await self._upload_art(metadata.picture, source.filename)

        self.pending.append(pending)
        result.status = StageStatus.STAGED
        return result

    async def _is_duplicate(self, title: str) -> bool:
        if any(p.title == title for p in self.pending):
            return True
        try:
            await self.gateway.find_by_title(title)
        except NotFoundError:
            return False
        return True

    async def _upload_art(self, picture: EmbeddedPicture, filename: str) -> str | None:
        name = generate_blob_name(extension_for(None, picture.mime))
        try:
            return await self.gateway.put_blob(BlobKind.ART, picture.data, picture.mime, name)
        except LibraryError as exc:
            logger.warning("Album art upload failed for %s: %s", filename, exc)
            return None

    async def commit(self) -> CommitReport:
        """Upload and insert every staged file, in order.

        Entries that were processed leave ``pending``; if an audio upload
        fails, that entry and everything after it stay staged.
        """
        self.committing = True
        try:
            report = await self._commit_pending()
        finally:
            self.committing = False

        logger.info(
            "Commit complete: %d committed, %d failed (of %d total)%s",
            report.committed,
            len(report.failed),
            report.total,
            " [aborted]" if report.aborted else "",
        )
        return report

    async def _commit_pending(self) -> CommitReport:
        report = CommitReport(total=len(self.pending))
        processed = 0

        for i, item in enumerate(self.pending, 1):
            source = item.source
            logger.info("[%d/%d] Committing: %s", i, report.total, source.filename)

            # Step 1: audio blob (failure aborts the batch)
            name = generate_blob_name(extension_for(source.filename, source.content_type))
            content_type = source.content_type or "application/octet-stream"
            try:
                music_url = await self.gateway.put_blob(
                    BlobKind.AUDIO, source.data, content_type, name
                )
            except LibraryError as exc:
                logger.error(
                    "Upload failed for %s; aborting remaining %d file(s): %s",
                    source.filename,
                    report.total - i + 1,
                    exc,
                )
                report.error = f"Upload failed for {source.filename}: {exc.message}"
                break

            processed += 1

            # Step 2: track record (failure is per-item)
            try:
                track = await self.gateway.insert(
                    TrackCreate(
                        title=item.title,
                        artist=item.artist,
                        album=item.album,
                        music_url=music_url,
                        cover_url=item.cover_url,
                    )
                )
            except LibraryError as exc:
                logger.error("Database insert failed for %s: %s", source.filename, exc)
                report.failed.append(CommitFailure(file=source.filename, error=exc.message))
                # Best effort: don't leave an unreferenced audio blob behind
                with contextlib.suppress(LibraryError):
                    await self.gateway.delete_blob(music_url)
                continue

            report.committed += 1
            report.tracks.append(track)

        del self.pending[:processed]
        return report

    def age(self) -> float:
        """Seconds since the session was created."""
        return time.monotonic() - self.created_at

    async def discard(self) -> None:
        """Drop every staged file without committing, removing staged cover art.

        Raises:
            ConstraintError: if a commit of this session is in progress.
        """
        if self.committing:
            raise ConstraintError("Cannot discard uploads while a commit is in progress")
        for item in self.pending:
            if item.cover_url:
                with contextlib.suppress(LibraryError):
                    await self.gateway.delete_blob(item.cover_url)
        self.pending.clear()
