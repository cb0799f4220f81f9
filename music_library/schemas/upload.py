from __future__ import annotations

import uuid
from enum import StrEnum

from pydantic import BaseModel, Field


class StageStatus(StrEnum):
    """Possible outcomes for staging a single file."""

    STAGED = "staged"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class PendingUploadInfo(BaseModel):
    """A staged file awaiting commit."""

    filename: str
    display_title: str
    title: str
    artist: str
    album: str
    cover_url: str | None = None


class StagedFileOutcome(BaseModel):
    file: str
    status: StageStatus
    error: str | None = None


class UploadSessionResponse(BaseModel):
    """Response for a staging request."""

    session_id: uuid.UUID
    staged: int = 0
    duplicates: int = 0
    rejected: int = 0
    skipped: int = 0
    error: str | None = None
    outcomes: list[StagedFileOutcome] = Field(default_factory=list)
    pending: list[PendingUploadInfo] = Field(default_factory=list)


class CommitError(BaseModel):
    """Describes a single staged file whose record insert failed."""

    file: str
    error: str


class CommitResponse(BaseModel):
    """Summary report for a commit run."""

    total: int
    committed: int = 0
    failed: list[CommitError] = Field(default_factory=list)
    error: str | None = None
    remaining: int = 0
