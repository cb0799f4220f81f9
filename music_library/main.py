import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from music_library.audio.storage import BLOB_PREFIXES
from music_library.db.engine import engine
from music_library.models import Base
from music_library.routers import blobs, health, tracks, uploads
from music_library.routers.errors import install_exception_handlers
from music_library.settings import settings

logger = logging.getLogger(__name__)


async def _check_database() -> None:
    """Verify the database is reachable and the track table exists."""
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        await conn.run_sync(Base.metadata.create_all)


def _ensure_storage_root() -> None:
    root = Path(settings.storage_root)
    for prefix in BLOB_PREFIXES:
        (root / prefix).mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # 1. Check database
    try:
        await _check_database()
        logger.info("Database connection verified")
    except Exception as exc:
        logger.debug("Database connection error: %s", exc)
        raise SystemExit(
            "FATAL: Cannot reach the database. "
            "Check DATABASE_URL and ensure the server is running."
        ) from exc

    # 2. Blob storage
    _ensure_storage_root()
    logger.info("Blob storage ready at %s", Path(settings.storage_root).resolve())

    if not settings.admin_api_key:
        logger.warning("ADMIN_API_KEY is not set; catalog writes are disabled")

    yield

    # Shutdown
    await engine.dispose()


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(health.router)
    application.include_router(blobs.media_router)
    application.include_router(health.version_router, prefix="/api/v1")
    application.include_router(tracks.router, prefix="/api/v1")
    application.include_router(blobs.router, prefix="/api/v1")
    application.include_router(uploads.router, prefix="/api/v1")

    install_exception_handlers(application)

    return application


app = create_app()
