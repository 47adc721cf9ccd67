from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from musicshare.core.auth import (
    CurrentUser,
    get_settings,
    optional_user,
    require_admin,
    require_user,
)
from musicshare.core.db import get_session
from musicshare.core.storage import get_storage
from musicshare.features.uploads.service import store_uploads
from sqlalchemy.ext.asyncio import AsyncSession

from . import dto
from .service import TrackService

router = APIRouter(prefix="/music", tags=["music"])


def get_track_service(
    request: Request, session: AsyncSession = Depends(get_session)
) -> TrackService:
    return TrackService(session, get_storage(request), get_settings(request))


@router.post("", response_model=dto.Track, status_code=status.HTTP_201_CREATED)
async def create_track(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    genre: Optional[str] = Form(None),
    track_status: Optional[str] = Form(None, alias="status"),
    is_public: Optional[str] = Form(None),
    audioFile: Optional[UploadFile] = File(None),
    backgroundImage: Optional[UploadFile] = File(None),
    user: CurrentUser = Depends(require_user),
    service: TrackService = Depends(get_track_service),
):
    uploads = await store_uploads(
        service.storage, service.settings, audio=audioFile, image=backgroundImage
    )
    return await service.create(
        owner=user,
        title=title,
        description=description,
        genre=genre,
        status=track_status,
        is_public=is_public,
        uploads=uploads,
    )


@router.get("", response_model=dto.TrackPage, status_code=status.HTTP_200_OK)
async def list_published_tracks(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    search: Optional[str] = None,
    genre: Optional[str] = None,
    service: TrackService = Depends(get_track_service),
):
    return await service.list_published(
        page=page, limit=limit, search=search, genre=genre
    )


@router.get("/user/mymusic", response_model=list[dto.Track])
@router.get("/mymusic", response_model=list[dto.Track], include_in_schema=False)
async def list_my_tracks(
    status: Optional[str] = None,
    user: CurrentUser = Depends(require_user),
    service: TrackService = Depends(get_track_service),
):
    return await service.my_tracks(owner=user, status=status)


@router.get("/admin/all", response_model=dto.TrackPage)
@router.get("/admin", response_model=dto.TrackPage, include_in_schema=False)
async def list_all_tracks(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    status: Optional[str] = None,
    owner: Optional[str] = None,
    user_id: Optional[str] = Query(None, alias="userId"),
    _admin: CurrentUser = Depends(require_admin),
    service: TrackService = Depends(get_track_service),
):
    return await service.admin_list(
        page=page, limit=limit, status=status, owner=owner or user_id
    )


@router.get("/{track_id}", response_model=dto.Track)
async def get_track(
    track_id: str,
    viewer: Optional[CurrentUser] = Depends(optional_user),
    service: TrackService = Depends(get_track_service),
):
    return await service.get(track_id=track_id, viewer=viewer)


@router.put("/{track_id}/publish", response_model=dto.Track)
async def publish_track(
    track_id: str,
    user: CurrentUser = Depends(require_user),
    service: TrackService = Depends(get_track_service),
):
    return await service.publish(track_id=track_id, user=user)


@router.put("/{track_id}/like", response_model=dto.LikeResult)
async def toggle_like(
    track_id: str,
    user: CurrentUser = Depends(require_user),
    service: TrackService = Depends(get_track_service),
):
    return await service.toggle_like(track_id=track_id, user=user)


@router.put("/{track_id}", response_model=dto.Track)
async def update_track(
    track_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    genre: Optional[str] = Form(None),
    track_status: Optional[str] = Form(None, alias="status"),
    is_public: Optional[str] = Form(None),
    audioFile: Optional[UploadFile] = File(None),
    backgroundImage: Optional[UploadFile] = File(None),
    user: CurrentUser = Depends(require_user),
    service: TrackService = Depends(get_track_service),
):
    uploads = await store_uploads(
        service.storage, service.settings, audio=audioFile, image=backgroundImage
    )
    changes = dto.TrackUpdate(
        title=title,
        description=description,
        genre=genre,
        status=track_status,
        is_public=is_public,
    )
    return await service.update(
        track_id=track_id, user=user, changes=changes, uploads=uploads
    )


@router.delete("/{track_id}", response_model=dto.DeleteResult)
async def delete_track(
    track_id: str,
    user: CurrentUser = Depends(require_user),
    service: TrackService = Depends(get_track_service),
):
    return await service.delete(track_id=track_id, user=user)

