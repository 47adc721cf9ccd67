from __future__ import annotations

import uuid
from typing import Any, Optional

from loguru import logger
from musicshare.core.errors import InvalidIdentifier, InvalidState, NotFound, ValidationError
from musicshare.core.settings import Settings
from musicshare.core.storage import AssetStorage
from musicshare.features.tracks import repository as tracks_repository
from musicshare.features.users import repository
from musicshare.features.users.entities import NAME_MAX_LENGTH, User
from sqlalchemy.ext.asyncio import AsyncSession

from . import dto


def to_dto(user: User) -> dto.UserOut:
    return dto.UserOut(
        id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role,
        createdAt=user.created_at,
    )


def parse_user_id(user_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        raise InvalidIdentifier("Invalid user ID")


def _clean_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise ValidationError("Name cannot be empty")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Name must be at most {NAME_MAX_LENGTH} characters")
    return name


async def get_or_create_user(
    session: AsyncSession,
    settings: Settings,
    *,
    email: str,
    name: Optional[str] = None,
) -> User:
    """Register the user on first sign-in.

    Emails listed in ADMIN_EMAILS start out as admins.
    """
    role = "admin" if email.lower() in settings.admin_emails else "user"
    if name:
        name = name.strip()[:NAME_MAX_LENGTH] or None
    user, created = await repository.upsert_user(
        session, email=email, name=name, role=role
    )
    if created:
        logger.info(f"Registered user {user.id} ({user.role})")
    return user


async def list_users(session: AsyncSession) -> list[dto.UserOut]:
    return [to_dto(u) for u in await repository.list_users(session)]


async def get_user(session: AsyncSession, *, user_id: str) -> dto.UserOut:
    user = await repository.get_user_by_id(session, user_id=parse_user_id(user_id))
    if user is None:
        raise NotFound("User not found")
    return to_dto(user)


async def _update(session: AsyncSession, uid: uuid.UUID, **values: Any) -> dto.UserOut:
    user = await repository.update_user(session, user_id=uid, **values)
    if user is None:
        raise NotFound("User not found")
    return to_dto(user)


async def update_profile(
    session: AsyncSession, *, user_id: str, name: str
) -> dto.UserOut:
    return await _update(session, parse_user_id(user_id), name=_clean_name(name))


async def update_user(
    session: AsyncSession,
    *,
    user_id: str,
    name: Optional[str] = None,
    role: Optional[str] = None,
) -> dto.UserOut:
    uid = parse_user_id(user_id)
    values: dict[str, Any] = {}
    if name is not None:
        values["name"] = _clean_name(name)
    if role is not None:
        values["role"] = role
    out = await _update(session, uid, **values)
    if values:
        logger.info(f"User {uid} updated ({', '.join(sorted(values))})")
    return out


async def change_role(
    session: AsyncSession, *, user_id: str, role: str
) -> dto.UserOut:
    out = await _update(session, parse_user_id(user_id), role=role)
    logger.info(f"User {out.id} role set to {role}")
    return out


async def delete_user(
    session: AsyncSession,
    storage: AssetStorage,
    settings: Settings,
    *,
    user_id: str,
    acting_user_id: str,
) -> dto.UserDeleted:
    """Remove a user together with their tracks, likes and stored assets."""
    uid = parse_user_id(user_id)
    if str(uid) == acting_user_id:
        raise InvalidState("You cannot delete your own account")
    if await repository.get_user_by_id(session, user_id=uid) is None:
        raise NotFound("User not found")

    try:
        assets = await tracks_repository.delete_by_owner(session, owner_id=uid)
        await repository.delete_user(session, user_id=uid)
    except Exception:
        await session.rollback()
        raise

    for audio_file, background_image in assets:
        await storage.discard("audio", audio_file)
        if background_image != settings.DEFAULT_BACKGROUND_IMAGE:
            await storage.discard("image", background_image)
    logger.info(f"User {uid} deleted with {len(assets)} track(s)")
    return dto.UserDeleted(id=str(uid))
