"""Liveness and build metadata."""

import os
import subprocess  # nosec B404
from functools import lru_cache

from fastapi import APIRouter

from music_library.schemas.health import HealthResponse, VersionResponse
from music_library.settings import settings

router = APIRouter(tags=["health"])
version_router = APIRouter(tags=["version"])


@lru_cache(maxsize=1)
def _git_sha() -> str:
    # Container builds bake the sha in; fall back to the checkout.
    baked = os.environ.get("GIT_SHA")
    if baked:
        return baked
    try:
        out = subprocess.run(  # nosec
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            check=True,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return "unknown"
    return out.stdout.strip() or "unknown"


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=settings.app_version)


@version_router.get("/version", response_model=VersionResponse)
async def get_version() -> VersionResponse:
    return VersionResponse(
        name=settings.app_name,
        version=settings.app_version,
        git_sha=_git_sha(),
        build_time=os.environ.get("BUILD_TIME", "unknown"),
    )
