"""Gateway adapter over an async SQLAlchemy track table and a local blob store."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import Select, delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import InstrumentedAttribute

from music_library.audio.storage import BlobKind, LocalBlobStore
from music_library.errors import (
    ConstraintError,
    InvalidInputError,
    NotFoundError,
    TransportError,
)
from music_library.gateway.base import DataStoreGateway
from music_library.models.track import Track
from music_library.schemas.track import TRACK_FIELDS, TrackCreate, TrackInfo

logger = logging.getLogger(__name__)


def _column(field: str) -> InstrumentedAttribute[Any]:
    if field not in TRACK_FIELDS:
        raise InvalidInputError(f"Unknown track field: {field!r}")
    return getattr(Track, field)


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so the text is matched literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlGateway(DataStoreGateway):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        blob_store: LocalBlobStore,
    ) -> None:
        self._session_factory = session_factory
        self.blob_store = blob_store

    async def _fetch(self, stmt: Select[tuple[Track]]) -> list[TrackInfo]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [TrackInfo.model_validate(t) for t in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("Track query failed: %s", exc)
            raise TransportError(f"Track query failed: {exc}") from exc

    async def list_page(
        self,
        page: int,
        limit: int,
        order_by: str = "id",
        descending: bool = True,
    ) -> list[TrackInfo]:
        if page < 1 or limit < 1:
            raise InvalidInputError("page and limit must be positive")
        column = _column(order_by)
        stmt = (
            select(Track)
            .order_by(column.desc() if descending else column.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def list_by_field(self, field: str, value: Any) -> list[TrackInfo]:
        stmt = select(Track).where(_column(field) == value).order_by(Track.id.desc())
        return await self._fetch(stmt)

    async def search_text(self, pattern: str) -> list[TrackInfo]:
        if not pattern or not pattern.strip():
            return []
        like = f"%{escape_like(pattern)}%"
        stmt = (
            select(Track)
            .where(
                or_(
                    Track.title.ilike(like, escape="\\"),
                    Track.album.ilike(like, escape="\\"),
                    Track.artist.ilike(like, escape="\\"),
                )
            )
            .order_by(Track.id.desc())
        )
        return await self._fetch(stmt)

    async def find_by_title(self, title: str) -> TrackInfo:
        rows = await self._fetch(select(Track).where(Track.title == title).limit(1))
        if not rows:
            raise NotFoundError(f"No track titled {title!r}")
        return rows[0]

    async def get(self, track_id: int) -> TrackInfo:
        rows = await self._fetch(select(Track).where(Track.id == track_id))
        if not rows:
            raise NotFoundError(f"No track found with id {track_id}")
        return rows[0]

    async def list_artists(self) -> list[str]:
        stmt = select(Track.artist).where(Track.artist != "").distinct().order_by(Track.artist)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Artist query failed: %s", exc)
            raise TransportError(f"Artist query failed: {exc}") from exc

    async def insert(self, track: TrackCreate) -> TrackInfo:
        row = Track(**track.model_dump())
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
        except IntegrityError as exc:
            logger.warning("Track insert rejected: %s", exc.orig)
            raise ConstraintError(f"Track insert rejected: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            logger.error("Track insert failed: %s", exc)
            raise TransportError(f"Track insert failed: {exc}") from exc

        logger.info("Inserted track %s (%s)", row.id, row.title)
        return TrackInfo.model_validate(row)

    async def update(self, track_id: int, fields: Mapping[str, Any]) -> None:
        if not fields:
            raise InvalidInputError("No fields to update")
        for name in fields:
            if name == "id":
                raise InvalidInputError("Track id is immutable")
            _column(name)

        stmt = update(Track).where(Track.id == track_id).values(**fields)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except IntegrityError as exc:
            raise ConstraintError(f"Track update rejected: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            logger.error("Track update failed for %s: %s", track_id, exc)
            raise TransportError(f"Track update failed: {exc}") from exc

        if result.rowcount == 0:
            raise NotFoundError(f"No track found with id {track_id}")

    async def delete(self, track_id: int) -> None:
        stmt = delete(Track).where(Track.id == track_id)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Track delete failed for %s: %s", track_id, exc)
            raise TransportError(f"Track delete failed: {exc}") from exc

        if result.rowcount == 0:
            raise NotFoundError(f"No track found with id {track_id}")
        logger.info("Deleted track %s", track_id)

    async def put_blob(self, kind: BlobKind, data: bytes, content_type: str, name: str) -> str:
        return await self.blob_store.put(kind, data, content_type, name)

    async def delete_blob(self, locator: str) -> None:
        await self.blob_store.delete(locator)
