import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from musicshare.core.auth import (
    CurrentUser,
    get_settings,
    require_admin,
    require_moderator,
    require_user,
    sign_internal_jwt,
    verify_oidc_token,
)
from musicshare.core.db import get_session
from musicshare.core.settings import Settings
from musicshare.core.storage import AssetStorage, get_storage
from musicshare.features.users import dto as users_dto
from musicshare.features.users import service as users_service
from musicshare.features.users.repository import get_user_by_id
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/session")
async def establish_session(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    # Validate external OIDC token from Authorization header
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide OIDC token via Authorization header",
        )
    oidc_token = auth_header.split(" ", 1)[1]

    oidc_claims = verify_oidc_token(oidc_token, settings)

    # Extract user identity
    email = oidc_claims.get("email")
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="OIDC token missing email"
        )

    # Try common locations for a display name
    name: str | None = (
        oidc_claims.get("name")
        or (oidc_claims.get("user_metadata") or {}).get("name")
        or (oidc_claims.get("user_metadata") or {}).get("full_name")
    )

    # Register on first sign-in and issue our own compact JWT
    user = await users_service.get_or_create_user(
        session, settings, email=email, name=name
    )
    user_id = str(user.id)

    internal_jwt = sign_internal_jwt(settings, email=email, user_id=user_id)

    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=internal_jwt,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite=settings.AUTH_COOKIE_SAMESITE,
        domain=settings.AUTH_COOKIE_DOMAIN,
        max_age=settings.INTERNAL_JWT_EXPIRES_SECONDS,
        path="/",
    )
    return {
        "ok": True,
        "id": user_id,
        "email": email,
        "role": user.role,
        "token": internal_jwt,
    }


@router.get("/profile", response_model=users_dto.UserOut)
async def get_profile(
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Return the current user's profile."""
    row = await get_user_by_id(session, user_id=uuid.UUID(user.id))
    return users_service.to_dto(row)


@router.put("/profile", response_model=users_dto.UserOut)
async def update_profile(
    req: users_dto.ProfileUpdateRequest,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return await users_service.update_profile(session, user_id=user.id, name=req.name)


@router.post("/logout")
async def logout(
    response: Response, settings: Settings = Depends(get_settings)
) -> Dict[str, Any]:
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME, domain=settings.AUTH_COOKIE_DOMAIN, path="/"
    )
    return {"ok": True}


@router.get("/users", response_model=list[users_dto.UserOut])
async def list_users(
    _moderator: CurrentUser = Depends(require_moderator),
    session: AsyncSession = Depends(get_session),
):
    return await users_service.list_users(session)


@router.put("/users/{user_id}/role", response_model=users_dto.UserOut)
async def change_user_role(
    user_id: str,
    req: users_dto.RoleUpdateRequest,
    _admin: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await users_service.change_role(session, user_id=user_id, role=req.role)


@router.get("/users/{user_id}", response_model=users_dto.UserOut)
async def get_user(
    user_id: str,
    _admin: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await users_service.get_user(session, user_id=user_id)


@router.put("/users/{user_id}", response_model=users_dto.UserOut)
async def update_user(
    user_id: str,
    req: users_dto.UserUpdateRequest,
    _admin: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await users_service.update_user(
        session, user_id=user_id, name=req.name, role=req.role
    )


@router.delete("/users/{user_id}", response_model=users_dto.UserDeleted)
async def delete_user(
    user_id: str,
    admin: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    storage: AssetStorage = Depends(get_storage),
):
    return await users_service.delete_user(
        session, storage, settings, user_id=user_id, acting_user_id=admin.id
    )
