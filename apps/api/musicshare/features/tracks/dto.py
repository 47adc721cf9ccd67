from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TrackStatus = Literal["draft", "published"]


class Owner(BaseModel):
    id: str
    name: str | None = None


class Track(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str | None = None
    genre: str | None = None
    audio_file: str = Field(..., alias="audioFile")
    audio_url: str = Field(..., alias="audioUrl")
    background_image: str = Field(..., alias="backgroundImage")
    background_image_url: str = Field(..., alias="backgroundImageUrl")
    owner: Owner
    status: TrackStatus = "draft"
    is_public: bool = Field(False, alias="isPublic")
    published_at: datetime | None = Field(None, alias="publishedAt")
    plays: int = 0
    like_count: int = Field(0, alias="likeCount")
    likes: list[str] = Field(default_factory=list)
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class TrackPage(BaseModel):
    items: list[Track]
    page: int
    limit: int
    total: int
    pages: int


class TrackUpdate(BaseModel):
    """Fields supplied to a partial update; None means "not supplied"."""

    title: str | None = None
    description: str | None = None
    genre: str | None = None
    status: str | None = None
    is_public: str | None = None


class LikeResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["liked", "unliked"]
    liked: bool
    like_count: int = Field(..., alias="likeCount")
    message: str


class DeleteResult(BaseModel):
    id: str
    message: str = "Music deleted successfully"
