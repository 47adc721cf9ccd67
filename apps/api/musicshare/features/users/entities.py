from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from musicshare.core.db import Base
from musicshare.core.utils.time import utcnow

if TYPE_CHECKING:
    from musicshare.features.tracks.entities import Track
from sqlalchemy import CheckConstraint, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

ROLES = ("user", "moderator", "admin")
NAME_MAX_LENGTH = 200


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(NAME_MAX_LENGTH), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utcnow, onupdate=utcnow, nullable=False
    )

    tracks: Mapped[list[Track]] = relationship(
        back_populates="owner", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            "role in ('user','moderator','admin')", name="ck_users_role"
        ),
    )
