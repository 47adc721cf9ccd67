from __future__ import annotations

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class MusicError(HTTPException):
    """Base for errors raised by services and guards.

    Subclasses pin the status code so callers only pass a message.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Server error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or self.default_detail,
        )


class ValidationError(MusicError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class InvalidIdentifier(MusicError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid music ID"


class AlreadyPublished(MusicError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Music is already published"


class InvalidState(MusicError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Operation not allowed in current state"


class Unauthenticated(MusicError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authorized"


class Forbidden(MusicError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not authorized"


class NotFound(MusicError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Music not found"


async def _unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Server error"},
    )


def install_error_handlers(app: FastAPI) -> None:
    # HTTPException subclasses are rendered by FastAPI's default handler
    app.add_exception_handler(Exception, _unhandled_exception)
