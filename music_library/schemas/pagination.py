from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from music_library.schemas.track import TrackInfo

T = TypeVar("T")

# Largest page the track listing will serve.
MAX_PAGE_SIZE = 100


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    parts = name.split("_")
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


class PaginationMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=_to_camel)

    page: int
    page_size: int = Field(ge=1, le=MAX_PAGE_SIZE)
    has_more: bool


class PaginatedResponse(BaseModel, Generic[T]):
    data: list[T]
    pagination: PaginationMeta


class CatalogPage(BaseModel):
    """One offset/limit window over the catalog, newest first."""

    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    items: list[TrackInfo] = Field(default_factory=list)

    @property
    def has_more(self) -> bool:
        # A short page means the end of the data was reached.
        return len(self.items) >= self.page_size
