from __future__ import annotations

import uuid
from typing import Any, Sequence

from musicshare.features.tracks.entities import PUBLISHED, Track, TrackLike
from sqlalchemy import ColumnElement, delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload


def _with_relations(stmt):
    return stmt.options(selectinload(Track.likes), selectinload(Track.owner))


def search_clause(dialect: str, search: str) -> ColumnElement[bool]:
    """Full-text match over title and description.

    PostgreSQL uses the tsvector expression backed by the GIN index from
    migration 0001; other dialects fall back to substring matching.
    """
    if dialect == "postgresql":
        document = func.to_tsvector(
            "english",
            func.coalesce(Track.title, "") + " " + func.coalesce(Track.description, ""),
        )
        return document.bool_op("@@")(func.plainto_tsquery("english", search))
    return or_(
        Track.title.icontains(search, autoescape=True),
        Track.description.icontains(search, autoescape=True),
    )


async def get_track(session: AsyncSession, track_id: uuid.UUID) -> Track | None:
    res = await session.execute(_with_relations(select(Track).where(Track.id == track_id)))
    return res.scalar_one_or_none()


async def insert_track(session: AsyncSession, **values: Any) -> uuid.UUID:
    res = await session.execute(insert(Track).values(**values).returning(Track.id))
    track_id = res.scalar_one()
    await session.commit()
    return track_id


async def _page(
    session: AsyncSession,
    filters: Sequence[ColumnElement[bool]],
    order_by: Sequence[Any],
    *,
    offset: int,
    limit: int,
) -> tuple[list[Track], int]:
    stmt = (
        _with_relations(select(Track))
        .where(*filters)
        .order_by(*order_by)
        .offset(offset)
        .limit(limit)
    )
    res = await session.execute(stmt)
    rows = list(res.scalars().all())
    total = await session.scalar(select(func.count()).select_from(Track).where(*filters))
    return rows, int(total or 0)


async def list_published(
    session: AsyncSession,
    *,
    offset: int,
    limit: int,
    search: str | None = None,
    genre: str | None = None,
) -> tuple[list[Track], int]:
    filters: list[ColumnElement[bool]] = [Track.status == PUBLISHED]
    if search:
        filters.append(search_clause(session.get_bind().dialect.name, search))
    if genre:
        filters.append(Track.genre == genre)
    return await _page(
        session,
        filters,
        (Track.published_at.desc(), Track.created_at.desc()),
        offset=offset,
        limit=limit,
    )


async def list_all(
    session: AsyncSession,
    *,
    offset: int,
    limit: int,
    status: str | None = None,
    owner_id: uuid.UUID | None = None,
) -> tuple[list[Track], int]:
    filters: list[ColumnElement[bool]] = []
    if status:
        filters.append(Track.status == status)
    if owner_id:
        filters.append(Track.owner_id == owner_id)
    return await _page(
        session, filters, (Track.created_at.desc(),), offset=offset, limit=limit
    )


async def list_by_owner(
    session: AsyncSession, *, owner_id: uuid.UUID, status: str | None = None
) -> list[Track]:
    stmt = _with_relations(select(Track)).where(Track.owner_id == owner_id)
    if status:
        stmt = stmt.where(Track.status == status)
    res = await session.execute(stmt.order_by(Track.created_at.desc()))
    return list(res.scalars().all())


async def increment_plays(session: AsyncSession, track_id: uuid.UUID) -> None:
    await session.execute(
        update(Track)
        .where(Track.id == track_id)
        .values(plays=Track.plays + 1)
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def delete_track(session: AsyncSession, track_id: uuid.UUID) -> None:
    # Explicit like removal: SQLite only honours ON DELETE CASCADE with a pragma
    await session.execute(delete(TrackLike).where(TrackLike.track_id == track_id))
    await session.execute(
        delete(Track).where(Track.id == track_id).execution_options(synchronize_session=False)
    )
    await session.commit()


async def delete_by_owner(
    session: AsyncSession, *, owner_id: uuid.UUID
) -> list[tuple[str, str]]:
    """Delete every track of `owner_id` without committing.

    Returns the `(audio_file, background_image)` pairs of the removed tracks.
    """
    res = await session.execute(
        select(Track.id, Track.audio_file, Track.background_image).where(
            Track.owner_id == owner_id
        )
    )
    rows = res.all()
    track_ids = [row.id for row in rows]
    if track_ids:
        await session.execute(delete(TrackLike).where(TrackLike.track_id.in_(track_ids)))
        await session.execute(
            delete(Track)
            .where(Track.id.in_(track_ids))
            .execution_options(synchronize_session=False)
        )
    return [(row.audio_file, row.background_image) for row in rows]


async def has_like(
    session: AsyncSession, *, track_id: uuid.UUID, user_id: uuid.UUID
) -> bool:
    res = await session.execute(
        select(TrackLike.user_id).where(
            TrackLike.track_id == track_id, TrackLike.user_id == user_id
        )
    )
    return res.first() is not None


async def add_like(
    session: AsyncSession, *, track_id: uuid.UUID, user_id: uuid.UUID
) -> None:
    try:
        await session.execute(
            insert(TrackLike).values(track_id=track_id, user_id=user_id)
        )
        await session.commit()
    except IntegrityError:
        # A concurrent request liked first; the set already holds this user
        await session.rollback()


async def remove_like(
    session: AsyncSession, *, track_id: uuid.UUID, user_id: uuid.UUID
) -> None:
    await session.execute(
        delete(TrackLike)
        .where(TrackLike.track_id == track_id, TrackLike.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def count_likes(session: AsyncSession, *, track_id: uuid.UUID) -> int:
    total = await session.scalar(
        select(func.count()).select_from(TrackLike).where(TrackLike.track_id == track_id)
    )
    return int(total or 0)
