from __future__ import annotations

import uuid
from typing import Any, Optional

from musicshare.features.tracks.entities import TrackLike
from musicshare.features.users.entities import User
from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession


async def upsert_user(
    session: AsyncSession,
    *,
    email: str,
    name: Optional[str] = None,
    role: str = "user",
) -> tuple[User, bool]:
    """Return `(user, created)` for `email`, creating it with `role` if missing.

    An existing user's role is never changed here.
    """
    res = await session.execute(select(User).where(User.email == email))
    user: User | None = res.scalar_one_or_none()
    if user:
        if name and user.name != name:
            await session.execute(
                update(User).where(User.id == user.id).values(name=name)
            )
            await session.commit()
            user.name = name
        return user, False
    stmt = insert(User).values(email=email, name=name, role=role).returning(User)
    res = await session.execute(stmt)
    user = res.scalar_one()
    await session.commit()
    return user, True


async def get_user_by_id(session: AsyncSession, *, user_id: uuid.UUID) -> User | None:
    res = await session.execute(select(User).where(User.id == user_id))
    return res.scalar_one_or_none()


async def list_users(session: AsyncSession) -> list[User]:
    res = await session.execute(select(User).order_by(User.created_at.desc()))
    return list(res.scalars().all())


async def update_user(
    session: AsyncSession, *, user_id: uuid.UUID, **values: Any
) -> User | None:
    if values:
        await session.execute(update(User).where(User.id == user_id).values(**values))
    await session.commit()
    res = await session.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def delete_user(session: AsyncSession, *, user_id: uuid.UUID) -> bool:
    """Delete the user and the likes they gave, committing any pending work.

    Callers remove the user's own tracks first in the same transaction.
    """
    await session.execute(delete(TrackLike).where(TrackLike.user_id == user_id))
    res = await session.execute(
        delete(User).where(User.id == user_id).execution_options(synchronize_session=False)
    )
    await session.commit()
    return res.rowcount > 0
