"""Exception taxonomy shared by gateways and library coordinators.

Every backend failure surfaces as a subclass of :class:`LibraryError` so
coordinators can absorb per-item failures with a single ``except`` clause while
still telling "row missing" apart from "backend unreachable".
"""

from __future__ import annotations


class LibraryError(Exception):
    """Base class for all music library errors."""

    code = "LIBRARY_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidInputError(LibraryError):
    """Input rejected before any backend work (wrong media type, bad field)."""

    code = "INVALID_INPUT"


class NotFoundError(LibraryError):
    """The requested row does not exist."""

    code = "NOT_FOUND"


class ConstraintError(LibraryError):
    """The backend rejected a write (unique or not-null violation)."""

    code = "CONSTRAINT_VIOLATION"


class TransportError(LibraryError):
    """The backend could not be reached or failed unexpectedly."""

    code = "SERVICE_UNAVAILABLE"
