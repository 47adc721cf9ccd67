from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "moderator", "admin"]


class UserOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    name: str | None = None
    role: Role = "user"
    created_at: datetime | None = Field(None, alias="createdAt")


class RoleUpdateRequest(BaseModel):
    role: Role


class ProfileUpdateRequest(BaseModel):
    name: str


class UserUpdateRequest(BaseModel):
    name: str | None = None
    role: Role | None = None


class UserDeleted(BaseModel):
    id: str
    message: str = "User removed"
