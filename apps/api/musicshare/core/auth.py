from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from jwt import ExpiredSignatureError, InvalidTokenError, PyJWKClient, PyJWTError
from jwt import decode as jwt_decode
from jwt import encode as jwt_encode
from musicshare.core.db import get_session
from musicshare.core.errors import Forbidden, Unauthenticated
from musicshare.core.settings import Settings
from musicshare.features.users.repository import get_user_by_id
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _raise_misconfigured() -> None:
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="OIDC issuer/JWKS not configured",
    )


@lru_cache(maxsize=4)
def get_jwk_client(jwks_url: str) -> PyJWKClient:
    return PyJWKClient(jwks_url)


def _extract_bearer_from_authorization_header(
    authorization: Optional[str],
) -> Optional[str]:
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


def _get_token_from_request(request: Request, settings: Settings) -> Optional[str]:
    # Prefer cookie, fallback to Authorization header
    token_from_cookie = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token_from_cookie:
        return token_from_cookie
    return _extract_bearer_from_authorization_header(
        request.headers.get("authorization")
    )


def decode_internal_jwt(token: str, settings: Settings) -> Dict[str, Any]:
    """Validate our internal JWT and return its claims.

    Claims contain at least 'id' and 'email'.
    """
    try:
        claims = jwt_decode(
            token,
            settings.INTERNAL_JWT_SECRET,
            algorithms=[settings.INTERNAL_JWT_ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except InvalidTokenError:
        raise Unauthenticated("Invalid token")
    if "id" not in claims or "email" not in claims:
        raise Unauthenticated("Invalid token payload")
    return claims


async def _resolve_user(
    token: str, settings: Settings, session: AsyncSession
) -> CurrentUser:
    claims = decode_internal_jwt(token, settings)
    try:
        user_id = uuid.UUID(str(claims["id"]))
    except ValueError:
        raise Unauthenticated("Invalid token payload")
    # Role is read from the store so promotions apply without a new token
    user = await get_user_by_id(session, user_id=user_id)
    if user is None:
        raise Unauthenticated("User not found")
    return CurrentUser(id=str(user.id), email=user.email, role=user.role)


async def require_user(
    request: Request, session: AsyncSession = Depends(get_session)
) -> CurrentUser:
    settings = get_settings(request)
    token = _get_token_from_request(request, settings)
    if not token:
        raise Unauthenticated("Not authorized, no token")
    return await _resolve_user(token, settings, session)


async def optional_user(
    request: Request, session: AsyncSession = Depends(get_session)
) -> CurrentUser | None:
    """Like `require_user`, but anonymous requests resolve to None.

    A credential that is present but invalid is still rejected.
    """
    settings = get_settings(request)
    token = _get_token_from_request(request, settings)
    if not token:
        return None
    return await _resolve_user(token, settings, session)


async def require_admin(user: CurrentUser = Depends(require_user)) -> CurrentUser:
    if user.role != "admin":
        raise Forbidden("Not authorized as admin")
    return user


async def require_moderator(user: CurrentUser = Depends(require_user)) -> CurrentUser:
    if user.role not in ("moderator", "admin"):
        raise Forbidden("Not authorized as moderator")
    return user


def verify_oidc_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Verify an external OIDC provider token using JWKS.

    Used only during session establishment to authenticate the user
    before issuing our own internal JWT.
    """
    if not settings.OIDC_ISSUER or not settings.OIDC_JWKS_URL:
        _raise_misconfigured()
    try:
        signing_key = (
            get_jwk_client(settings.OIDC_JWKS_URL).get_signing_key_from_jwt(token).key
        )
        return jwt_decode(
            token,
            signing_key,
            algorithms=["RS256", "RS512", "ES256"],
            audience=settings.OIDC_AUDIENCE or None,
            issuer=settings.OIDC_ISSUER,
            options={"verify_at_hash": False},
        )
    except PyJWTError:
        raise Unauthenticated("Invalid token")


def sign_internal_jwt(
    settings: Settings,
    *,
    email: str,
    user_id: str,
    expires_in_seconds: Optional[int] = None,
) -> str:
    """Create a short payload JWT containing only 'id' and 'email'.

    Adds standard 'iat' and 'exp' for security.
    """
    now = datetime.now(tz=timezone.utc)
    ttl = (
        expires_in_seconds
        if expires_in_seconds is not None
        else settings.INTERNAL_JWT_EXPIRES_SECONDS
    )
    payload: Dict[str, Any] = {
        "id": user_id,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl)).timestamp()),
    }
    return jwt_encode(
        payload, settings.INTERNAL_JWT_SECRET, algorithm=settings.INTERNAL_JWT_ALGORITHM
    )
