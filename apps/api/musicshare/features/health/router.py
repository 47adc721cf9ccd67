from __future__ import annotations

from fastapi import APIRouter, Request
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.get("/healthz")
async def healthz(request: Request) -> dict:
    try:
        async with request.app.state.sessionmaker() as session:
            await session.execute(text("select 1"))
        db_ok = True
    except (SQLAlchemyError, OSError) as exc:
        logger.warning(f"Database probe failed: {exc}")
        db_ok = False
    return {"ok": True, "db": db_ok}
