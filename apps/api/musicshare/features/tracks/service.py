from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone

from loguru import logger
from musicshare.core.auth import CurrentUser
from musicshare.core.errors import (
    AlreadyPublished,
    Forbidden,
    InvalidIdentifier,
    InvalidState,
    NotFound,
    ValidationError,
)
from musicshare.core.settings import Settings
from musicshare.core.storage import AssetStorage
from musicshare.core.utils.time import utcnow
from musicshare.features.tracks import repository
from musicshare.features.tracks.entities import (
    DRAFT,
    GENRE_MAX_LENGTH,
    PUBLISHED,
    STATUSES,
    TITLE_MAX_LENGTH,
    Track,
)
from musicshare.features.uploads.schemas import StoredUploads
from musicshare.features.uploads.service import discard_uploads
from sqlalchemy.ext.asyncio import AsyncSession

from . import dto

# Keeps row offsets well inside the database integer range
MAX_PAGE = 1_000_000


def parse_track_id(track_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(track_id))
    except ValueError:
        raise InvalidIdentifier("Invalid music ID")


def resolve_status(status: str | None, is_public: str | bool | None) -> str | None:
    """Map the `status` / legacy `is_public` form fields to a track status.

    An explicit status wins; None means neither was supplied.
    """
    if status is not None and status != "":
        if status not in STATUSES:
            raise ValidationError("Status must be 'draft' or 'published'")
        return status
    if is_public is None or is_public == "":
        return None
    if is_public is True or str(is_public).lower() == "true":
        return PUBLISHED
    return DRAFT


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _bounded(label: str, value: str | None, max_length: int) -> str | None:
    if value is not None and len(value) > max_length:
        raise ValidationError(f"{label} must be at most {max_length} characters")
    return value


def _positive_int(value: int | str | None) -> int | None:
    """Lenient query parsing: anything that is not a positive integer is None."""
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class TrackService:
    """Track lifecycle: drafts, publishing, plays, likes and asset cleanup."""

    def __init__(
        self, session: AsyncSession, storage: AssetStorage, settings: Settings
    ) -> None:
        self.session = session
        self.storage = storage
        self.settings = settings

    def to_dto(self, track: Track) -> dto.Track:
        return dto.Track(
            id=str(track.id),
            title=track.title,
            description=track.description,
            genre=track.genre,
            audioFile=track.audio_file,
            audioUrl=self.storage.url("audio", track.audio_file),
            backgroundImage=track.background_image,
            backgroundImageUrl=self.storage.url("image", track.background_image),
            owner=dto.Owner(
                id=str(track.owner_id),
                name=track.owner.name if track.owner is not None else None,
            ),
            status=track.status,
            isPublic=track.status == PUBLISHED,
            publishedAt=_as_utc(track.published_at),
            plays=track.plays,
            likeCount=len(track.likes),
            likes=[str(like.user_id) for like in track.likes],
            createdAt=_as_utc(track.created_at),
            updatedAt=_as_utc(track.updated_at),
        )

    def _page_window(
        self, page: int | str | None, limit: int | str | None
    ) -> tuple[int, int, int]:
        page = min(_positive_int(page) or 1, MAX_PAGE)
        limit = _positive_int(limit) or self.settings.DEFAULT_PAGE_SIZE
        limit = min(limit, self.settings.MAX_PAGE_SIZE)
        return page, limit, (page - 1) * limit

    def _paged(self, rows: list[Track], total: int, page: int, limit: int) -> dto.TrackPage:
        return dto.TrackPage(
            items=[self.to_dto(t) for t in rows],
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if limit else 0,
        )

    def _is_default_image(self, name: str | None) -> bool:
        return name == self.settings.DEFAULT_BACKGROUND_IMAGE

    async def _load(self, track_id: uuid.UUID) -> Track:
        track = await repository.get_track(self.session, track_id)
        if track is None:
            raise NotFound("Music not found")
        return track

    async def _reload(self, track_id: uuid.UUID) -> Track:
        # Drop stale instances so relationships are loaded fresh
        self.session.expunge_all()
        return await self._load(track_id)

    def _authorize_mutation(self, track: Track, user: CurrentUser) -> None:
        if str(track.owner_id) != user.id and not user.is_admin:
            raise Forbidden("Not authorized")

    async def create(
        self,
        *,
        owner: CurrentUser,
        title: str | None,
        uploads: StoredUploads,
        description: str | None = None,
        genre: str | None = None,
        status: str | None = None,
        is_public: str | bool | None = None,
    ) -> dto.Track:
        try:
            title = _clean(title)
            if not title or not uploads.audio_file:
                raise ValidationError("Title and audio file are required")
            _bounded("Title", title, TITLE_MAX_LENGTH)
            genre = _bounded("Genre", _clean(genre), GENRE_MAX_LENGTH)
            new_status = resolve_status(status, is_public) or DRAFT
            track_id = await repository.insert_track(
                self.session,
                owner_id=uuid.UUID(owner.id),
                title=title,
                description=_clean(description),
                genre=genre,
                audio_file=uploads.audio_file,
                background_image=uploads.background_image
                or self.settings.DEFAULT_BACKGROUND_IMAGE,
                status=new_status,
                published_at=utcnow() if new_status == PUBLISHED else None,
                plays=0,
            )
        except Exception:
            # Rejected or failed creates must not leave files behind
            await discard_uploads(self.storage, uploads)
            raise
        logger.info(f"Track {track_id} created by {owner.id} ({new_status})")
        return self.to_dto(await self._reload(track_id))

    async def list_published(
        self,
        *,
        page: int | str | None = None,
        limit: int | str | None = None,
        search: str | None = None,
        genre: str | None = None,
    ) -> dto.TrackPage:
        page, limit, offset = self._page_window(page, limit)
        rows, total = await repository.list_published(
            self.session,
            offset=offset,
            limit=limit,
            search=_clean(search),
            genre=_clean(genre),
        )
        return self._paged(rows, total, page, limit)

    async def get(self, *, track_id: str, viewer: CurrentUser | None) -> dto.Track:
        tid = parse_track_id(track_id)
        track = await self._load(tid)

        # Drafts are visible to their owner only, admins included
        if track.status == DRAFT and (viewer is None or str(track.owner_id) != viewer.id):
            raise Forbidden("Not authorized to access this draft")

        if track.status == PUBLISHED:
            await repository.increment_plays(self.session, tid)
            track = await self._reload(tid)
        return self.to_dto(track)

    async def my_tracks(
        self, *, owner: CurrentUser, status: str | None = None
    ) -> list[dto.Track]:
        rows = await repository.list_by_owner(
            self.session,
            owner_id=uuid.UUID(owner.id),
            status=status if status in STATUSES else None,
        )
        return [self.to_dto(t) for t in rows]

    async def update(
        self,
        *,
        track_id: str,
        user: CurrentUser,
        changes: dto.TrackUpdate,
        uploads: StoredUploads | None = None,
    ) -> dto.Track:
        uploads = uploads or StoredUploads()
        replaced_audio: str | None = None
        replaced_image: str | None = None
        try:
            tid = parse_track_id(track_id)
            track = await self._load(tid)
            self._authorize_mutation(track, user)

            if changes.title is not None:
                title = _clean(changes.title)
                if not title:
                    raise ValidationError("Title cannot be empty")
                track.title = _bounded("Title", title, TITLE_MAX_LENGTH)
            if changes.description is not None:
                track.description = _clean(changes.description)
            if changes.genre is not None:
                track.genre = _bounded("Genre", _clean(changes.genre), GENRE_MAX_LENGTH)

            new_status = resolve_status(changes.status, changes.is_public)
            if new_status == PUBLISHED and track.status == DRAFT:
                track.published_at = utcnow()
            elif new_status == DRAFT:
                track.published_at = None
            if new_status is not None:
                track.status = new_status

            if uploads.audio_file:
                replaced_audio = track.audio_file
                track.audio_file = uploads.audio_file
            if uploads.background_image:
                if not self._is_default_image(track.background_image):
                    replaced_image = track.background_image
                track.background_image = uploads.background_image

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            await discard_uploads(self.storage, uploads)
            raise

        # Old assets go only once the record points at the new ones
        await self.storage.discard("audio", replaced_audio)
        await self.storage.discard("image", replaced_image)
        logger.info(f"Track {tid} updated by {user.id}")
        return self.to_dto(await self._reload(tid))

    async def publish(self, *, track_id: str, user: CurrentUser) -> dto.Track:
        tid = parse_track_id(track_id)
        track = await self._load(tid)
        self._authorize_mutation(track, user)
        if track.status == PUBLISHED:
            raise AlreadyPublished("Music is already published")

        track.status = PUBLISHED
        track.published_at = utcnow()
        await self.session.commit()
        logger.info(f"Track {tid} published by {user.id}")
        return self.to_dto(await self._reload(tid))

    async def delete(self, *, track_id: str, user: CurrentUser) -> dto.DeleteResult:
        tid = parse_track_id(track_id)
        track = await self._load(tid)
        self._authorize_mutation(track, user)

        audio_file = track.audio_file
        background_image = track.background_image
        await repository.delete_track(self.session, tid)

        await self.storage.discard("audio", audio_file)
        if not self._is_default_image(background_image):
            await self.storage.discard("image", background_image)
        logger.info(f"Track {tid} deleted by {user.id}")
        return dto.DeleteResult(id=str(tid))

    async def toggle_like(self, *, track_id: str, user: CurrentUser) -> dto.LikeResult:
        tid = parse_track_id(track_id)
        track = await self._load(tid)
        if track.status != PUBLISHED:
            raise InvalidState("Cannot like unpublished music")

        uid = uuid.UUID(user.id)
        if await repository.has_like(self.session, track_id=tid, user_id=uid):
            await repository.remove_like(self.session, track_id=tid, user_id=uid)
            liked = False
        else:
            await repository.add_like(self.session, track_id=tid, user_id=uid)
            liked = True

        count = await repository.count_likes(self.session, track_id=tid)
        logger.debug(f"Track {tid} {'liked' if liked else 'unliked'} by {user.id}")
        return dto.LikeResult(
            action="liked" if liked else "unliked",
            liked=liked,
            likeCount=count,
            message="Music liked" if liked else "Music unliked",
        )

    async def admin_list(
        self,
        *,
        page: int | str | None = None,
        limit: int | str | None = None,
        status: str | None = None,
        owner: str | None = None,
    ) -> dto.TrackPage:
        page, limit, offset = self._page_window(page, limit)
        owner_id: uuid.UUID | None = None
        if owner:
            try:
                owner_id = uuid.UUID(owner)
            except ValueError:
                raise InvalidIdentifier("Invalid user ID")
        rows, total = await repository.list_all(
            self.session,
            offset=offset,
            limit=limit,
            status=status if status in STATUSES else None,
            owner_id=owner_id,
        )
        return self._paged(rows, total, page, limit)
