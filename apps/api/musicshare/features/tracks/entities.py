from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from musicshare.core.db import Base
from musicshare.core.utils.time import utcnow

if TYPE_CHECKING:
    from musicshare.features.users.entities import User

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

DRAFT = "draft"
PUBLISHED = "published"
STATUSES = (DRAFT, PUBLISHED)
TITLE_MAX_LENGTH = 200
GENRE_MAX_LENGTH = 100


class Track(Base):
    __tablename__ = "tracks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    genre: Mapped[str | None] = mapped_column(String(GENRE_MAX_LENGTH), nullable=True)
    audio_file: Mapped[str] = mapped_column(Text, nullable=False)
    background_image: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=DRAFT)
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    plays: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utcnow, onupdate=utcnow, nullable=False
    )

    owner: Mapped[User] = relationship(back_populates="tracks")
    likes: Mapped[list[TrackLike]] = relationship(
        back_populates="track",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TrackLike.created_at",
    )

    __table_args__ = (
        CheckConstraint("status in ('draft','published')", name="ck_tracks_status"),
        CheckConstraint("plays >= 0", name="ck_tracks_plays"),
        Index("ix_tracks_owner_created", "owner_id", "created_at"),
        Index("ix_tracks_status_published", "status", "published_at"),
    )


class TrackLike(Base):
    __tablename__ = "track_likes"

    track_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tracks.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utcnow, nullable=False
    )

    track: Mapped[Track] = relationship(back_populates="likes")
