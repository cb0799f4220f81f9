from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from music_library.models import Base


class Track(Base):
    __tablename__ = "music"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Core metadata
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    artist: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    album: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    # Blob locators
    music_url: Mapped[str] = mapped_column(Text, nullable=False)
    cover_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Favorite flag (0/1)
    pin: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Indexes
    __table_args__ = (
        Index("ix_music_title", "title"),
        Index("ix_music_artist", "artist"),
        Index("ix_music_pin", "pin"),
    )
