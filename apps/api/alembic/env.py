from __future__ import annotations

import asyncio
import os
import sys
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy.engine import Connection

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

# Registers every mapped table on Base.metadata
import musicshare.core.entities_hub  # noqa: F401,E402
from musicshare.core.db import Base, create_engine  # noqa: E402
from musicshare.core.settings import Settings  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

load_dotenv()
settings = Settings()
# `alembic -x db_url=...` targets another database without touching .env
db_url = context.get_x_argument(as_dictionary=True).get("db_url")
if db_url:
    settings = settings.model_copy(update={"DATABASE_URL": db_url})

target_metadata = Base.metadata


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite can only alter tables by copying them
        render_as_batch=settings.DATABASE_URL.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(
        url=settings.DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_engine(settings)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
