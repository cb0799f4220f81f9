"""Add-music endpoints: stage uploaded files for review, then commit them.

Protected by admin API key (X-Admin-Key header).
Commits are single-writer (concurrent commit requests get 429).
Unconfirmed sessions expire after a TTL and the session table is capped.
"""

from __future__ import annotations

import asyncio
import logging
import uuid

import magic
from fastapi import APIRouter, Depends, File, Response, UploadFile

from music_library.auth.admin import require_admin_key
from music_library.dependencies import get_gateway
from music_library.errors import NotFoundError
from music_library.gateway.base import DataStoreGateway
from music_library.library.uploads import (
    CommitReport,
    SourceFile,
    StageReport,
    StageResult,
    UploadSession,
)
from music_library.routers.errors import error_response
from music_library.schemas.upload import (
    CommitError,
    CommitResponse,
    PendingUploadInfo,
    StagedFileOutcome,
    StageStatus,
    UploadSessionResponse,
)
from music_library.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"], dependencies=[Depends(require_admin_key)])

# Declared types that carry no information; sniff the bytes instead.
_GENERIC_MIME_TYPES: set[str] = {"", "application/octet-stream", "binary/octet-stream"}

# WARNING: sessions and the lock are per-process. Multi-worker deployments
# need sticky routing for upload sessions.
_sessions: dict[uuid.UUID, UploadSession] = {}
_commit_lock = asyncio.Lock()


def _detect_content_type(upload: UploadFile, content: bytes) -> str | None:
    declared = (upload.content_type or "").split(";", 1)[0].strip().lower()
    if declared not in _GENERIC_MIME_TYPES:
        return declared
    try:
        return magic.from_buffer(content, mime=True)
    except Exception:
        logger.exception("Failed to detect MIME type for %s", upload.filename)
        return None


def _session_response(session_id: uuid.UUID, session: UploadSession) -> UploadSessionResponse:
    return UploadSessionResponse(
        session_id=session_id,
        pending=[
            PendingUploadInfo(
                filename=p.source.filename,
                display_title=p.display_title,
                title=p.title,
                artist=p.artist,
                album=p.album,
                cover_url=p.cover_url,
            )
            for p in session.pending
        ],
    )


def _stage_response(
    session_id: uuid.UUID,
    session: UploadSession,
    report: StageReport,
) -> UploadSessionResponse:
    response = _session_response(session_id, session)
    response.staged = report.staged
    response.duplicates = report.duplicates
    response.rejected = report.rejected
    response.skipped = report.skipped
    response.error = report.error
    response.outcomes = [
        StagedFileOutcome(file=r.file, status=r.status, error=r.error) for r in report.results
    ]
    return response


def _commit_response(report: CommitReport, remaining: int) -> CommitResponse:
    return CommitResponse(
        total=report.total,
        committed=report.committed,
        failed=[CommitError(file=f.file, error=f.error) for f in report.failed],
        error=report.error,
        remaining=remaining,
    )


async def _evict_sessions() -> None:
    """Discard sessions past their TTL, then the oldest while over the cap.

    Sessions with a commit in flight are never evicted.
    """
    idle = [(sid, s) for sid, s in _sessions.items() if not s.committing]
    idle.sort(key=lambda item: item[1].created_at)
    excess = len(_sessions) - settings.max_upload_sessions + 1

    for session_id, session in idle:
        if session.committing:
            continue
        expired = session.age() >= settings.upload_session_ttl_seconds
        if not expired and excess <= 0:
            break
        logger.info(
            "Evicting upload session %s (%d pending, %s)",
            session_id,
            len(session.pending),
            "expired" if expired else "over capacity",
        )
        _sessions.pop(session_id, None)
        excess -= 1
        await session.discard()


def _get_session(session_id: uuid.UUID) -> UploadSession:
    session = _sessions.get(session_id)
    if session is None:
        raise NotFoundError(f"No upload session with id {session_id}")
    return session


@router.post("/uploads", response_model=UploadSessionResponse, status_code=201)
async def stage_uploads(
    files: list[UploadFile] = File(  # noqa: B008
        ...,
        description="Audio files to add. Each file is staged for review before commit.",
    ),
    gateway: DataStoreGateway = Depends(get_gateway),  # noqa: B008
) -> UploadSessionResponse:
    """Stage a batch of audio files.

    Each file is validated, its metadata and cover art extracted, and titles
    already in the catalog are skipped.  Nothing is written to the track
    table until the session is committed.
    """
    sources: list[SourceFile] = []
    oversized: list[StageResult] = []
    for upload in files:
        content = await upload.read()
        filename = upload.filename or "upload"
        if len(content) > settings.max_upload_bytes:
            oversized.append(
                StageResult(
                    file=filename,
                    status=StageStatus.REJECTED,
                    error=(
                        "File too large. Maximum upload size is "
                        f"{settings.max_upload_bytes // (1024 * 1024)} MB."
                    ),
                )
            )
            continue
        sources.append(
            SourceFile(
                filename=filename,
                content_type=_detect_content_type(upload, content),
                data=content,
            )
        )

    session = UploadSession(gateway)
    report = await session.stage(sources)
    for result in oversized:
        report.total_files += 1
        report.record(result)

    await _evict_sessions()
    session_id = uuid.uuid4()
    _sessions[session_id] = session
    return _stage_response(session_id, session, report)


@router.get("/uploads/{session_id}", response_model=UploadSessionResponse)
async def get_upload_session(session_id: uuid.UUID) -> UploadSessionResponse:
    return _session_response(session_id, _get_session(session_id))


@router.post(
    "/uploads/{session_id}/commit",
    response_model=CommitResponse,
    responses={429: {"description": "Another commit is in progress"}},
)
async def commit_uploads(session_id: uuid.UUID) -> CommitResponse | Response:
    """Upload and insert every staged file of a session, in order.

    A failed audio upload stops the batch; the files not yet committed stay
    staged and the session can be committed again.
    """
    session = _get_session(session_id)

    # Check lock and acquire atomically -- no await points between
    # the locked() check and the async with, so no TOCTOU race.
    if _commit_lock.locked():
        return error_response(
            429,
            "RATE_LIMITED",
            "Another upload is in progress. Please try again in a moment.",
        )

    async with _commit_lock:
        report = await session.commit()

    if not session.pending:
        _sessions.pop(session_id, None)

    return _commit_response(report, remaining=len(session.pending))


@router.delete("/uploads/{session_id}", status_code=204)
async def discard_upload_session(session_id: uuid.UUID) -> Response:
    session = _get_session(session_id)
    await session.discard()
    _sessions.pop(session_id, None)
    return Response(status_code=204)
