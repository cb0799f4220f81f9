"""Admin API key authentication.

Catalog writes (adding, deleting, editing tracks and blobs) require the
X-Admin-Key header to match the ADMIN_API_KEY setting.  If the key is not
configured (empty string), ALL such requests are rejected with 403.
"""

from __future__ import annotations

import hmac

from fastapi import Header

from music_library.settings import settings


class AdminAuthError(Exception):
    """Raised when admin authentication fails.

    Handled by the exception handler registered in main.py to produce
    a consistent JSON error response.
    """

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


def verify_admin_key(key: str | None) -> None:
    """Check ``key`` against the configured admin key.

    Uses hmac.compare_digest() for timing-safe comparison.

    Raises:
        AdminAuthError: if the key is missing, wrong, or not configured.
    """
    if not settings.admin_api_key:
        raise AdminAuthError(
            "AUTH_NOT_CONFIGURED",
            "Admin API key not configured. Set ADMIN_API_KEY in environment.",
        )

    if not hmac.compare_digest(key or "", settings.admin_api_key):
        raise AdminAuthError(
            "FORBIDDEN",
            "Invalid or missing admin API key.",
        )


async def require_admin_key(
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
) -> None:
    """FastAPI dependency wrapping :func:`verify_admin_key`."""
    verify_admin_key(x_admin_key)
