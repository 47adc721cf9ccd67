from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

import musicshare.core.entities_hub  # noqa: F401
from musicshare.core.db import create_engine, create_sessionmaker, init_models
from musicshare.core.errors import install_error_handlers
from musicshare.core.logging import setup_logging
from musicshare.core.settings import Settings
from musicshare.core.storage import AssetStorage, LocalAssetStorage, build_storage
from musicshare.features.auth.router import router as auth_router
from musicshare.features.health.router import router as health_router
from musicshare.features.tracks.router import router as music_router


def create_app(
    settings: Settings | None = None,
    *,
    storage: AssetStorage | None = None,
    engine: AsyncEngine | None = None,
) -> FastAPI:
    """Build the API with explicit configuration, storage and database engine."""
    settings = settings or Settings()
    setup_logging(settings)
    engine = engine or create_engine(settings)
    storage = storage or build_storage(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Schema is normally managed via Alembic
        if settings.DB_AUTO_CREATE:
            await init_models(engine)
        logger.info(f"API started (storage={type(storage).__name__})")
        try:
            yield
        finally:
            await engine.dispose()
            logger.info("API stopped")

    app = FastAPI(title="Music Share API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = create_sessionmaker(engine)
    app.state.storage = storage

    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    install_error_handlers(app)

    app.include_router(auth_router)
    # Both route prefixes in use by clients map to the same endpoints
    app.include_router(music_router)
    app.include_router(music_router, prefix="/api/v1")
    app.include_router(health_router)

    if isinstance(storage, LocalAssetStorage):
        app.mount(
            settings.STATIC_URL_PREFIX,
            StaticFiles(directory=storage.root),
            name="uploads",
        )
    return app


