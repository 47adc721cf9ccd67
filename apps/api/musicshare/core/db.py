from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from .settings import Settings

Base = declarative_base()


def create_engine(settings: Settings) -> AsyncEngine:
    url = settings.DATABASE_URL
    if url.startswith("sqlite") and ":memory:" in url:
        # One shared connection, otherwise every checkout sees an empty database
        return create_async_engine(
            url,
            echo=settings.DB_ECHO,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, echo=settings.DB_ECHO, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Async session factory (aka DB context)
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def init_models(engine: AsyncEngine) -> None:
    import musicshare.core.entities_hub  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    sessionmaker: async_sessionmaker[AsyncSession] = request.app.state.sessionmaker
    async with sessionmaker() as session:
        yield session
