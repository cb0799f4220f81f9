"""CLI entry point for batch uploads.

Usage: music-library-upload /path/to/audio/ [--yes]

Talks to the remote service when BACKEND_URL is set, otherwise writes
directly to the configured database and blob storage.
"""

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

import magic

from music_library.gateway.base import DataStoreGateway
from music_library.library.uploads import SourceFile, UploadSession
from music_library.settings import settings

# Audio file extensions to scan
AUDIO_EXTENSIONS: set[str] = {".mp3", ".wav", ".ogg", ".oga", ".opus", ".m4a", ".mp4", ".flac"}

# mimetypes reports these containers as video
_AUDIO_TYPE_OVERRIDES: dict[str, str] = {".mp4": "audio/mp4"}


def main() -> None:
    """Main entry point for the batch upload CLI."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Add a directory of audio files to the library.")
    parser.add_argument("directory", type=Path, help="Directory to scan (recursively)")
    parser.add_argument("--yes", action="store_true", help="Commit without asking")
    args = parser.parse_args()

    if not args.directory.is_dir():
        print(f"Error: '{args.directory}' is not a directory", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    sys.exit(asyncio.run(_run_upload(args.directory, assume_yes=args.yes)))


def _content_type(path: Path) -> str | None:
    override = _AUDIO_TYPE_OVERRIDES.get(path.suffix.lower())
    if override:
        return override
    guessed, _ = mimetypes.guess_type(path.name)
    if guessed:
        return guessed
    return magic.from_file(str(path), mime=True)


def _scan(directory: Path) -> list[SourceFile]:
    audio_files = sorted(
        f for f in directory.rglob("*") if f.is_file() and f.suffix.lower() in AUDIO_EXTENSIONS
    )
    return [
        SourceFile(filename=f.name, content_type=_content_type(f), data=f.read_bytes())
        for f in audio_files
    ]


async def _open_gateway() -> DataStoreGateway:
    if settings.backend_url:
        from music_library.gateway.http import HttpGateway

        return HttpGateway.connect(
            settings.backend_url,
            admin_key=settings.admin_api_key,
            timeout=settings.http_timeout_seconds,
        )

    from music_library.audio.storage import LocalBlobStore
    from music_library.db.engine import engine
    from music_library.db.session import async_session_factory
    from music_library.gateway.sql import SqlGateway
    from music_library.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return SqlGateway(async_session_factory, LocalBlobStore.from_settings())


async def _run_upload(directory: Path, assume_yes: bool) -> int:
    """Stage every audio file in ``directory`` and commit after confirmation."""
    log = logging.getLogger(__name__)

    sources = _scan(directory)
    if not sources:
        log.warning("No audio files found in %s", directory)
        return 0
    log.info("Found %d audio files in %s", len(sources), directory)

    gateway = await _open_gateway()
    try:
        session = UploadSession(gateway)
        stage_report = await session.stage(sources)
        if stage_report.error:
            print(f"Error: {stage_report.error}", file=sys.stderr)  # noqa: T201

        if not session.pending:
            print("Nothing to upload.")  # noqa: T201
            return 1 if stage_report.error else 0

        print(f"\n{'=' * 60}")  # noqa: T201
        print("Staged files")  # noqa: T201
        print(f"{'=' * 60}")  # noqa: T201
        for item in session.pending:
            artist = item.artist or "Unknown artist"
            print(f"  - {item.display_title} ({artist})")  # noqa: T201

        if not assume_yes:
            answer = input(f"\nUpload {len(session.pending)} file(s)? [y/N] ")
            if answer.strip().lower() not in {"y", "yes"}:
                await session.discard()
                print("Cancelled.")  # noqa: T201
                return 0

        report = await session.commit()
    finally:
        aclose = getattr(gateway, "aclose", None)
        if aclose is not None:
            await aclose()

    # Print summary
    print(f"\n{'=' * 60}")  # noqa: T201
    print("Upload Report")  # noqa: T201
    print(f"{'=' * 60}")  # noqa: T201
    print(f"Total {report.committed} music added successfully!")  # noqa: T201
    print(f"Duplicates skipped: {stage_report.duplicates}")  # noqa: T201
    print(f"Rejected:           {stage_report.rejected + stage_report.skipped}")  # noqa: T201

    if report.failed:
        print("\nFailed files:")  # noqa: T201
        for failure in report.failed:
            print(f"  - {failure.file}: {failure.error}")  # noqa: T201

    if report.error:
        print(f"\nError: {report.error}", file=sys.stderr)  # noqa: T201

    print(f"{'=' * 60}")  # noqa: T201
    return 1 if report.aborted else 0


if __name__ == "__main__":
    main()
