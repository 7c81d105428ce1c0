"""Alembic env for the MediaForge history database.

The target URL is, in order: ``config.attributes["database_url"]`` (set by
callers that drive ``alembic.command`` directly), ``-x database_url=...`` on
the command line, then ``DATABASE_URL`` from mediaforge settings. Online
migrations run on the same async engine factory as the app, so SQLite and
MySQL (asyncmy) go through identical connect options.
"""
from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import make_url

from mediaforge.config import get_settings
from mediaforge.database import Base, make_engine
import mediaforge.models  # noqa: F401  (registers history_items)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url() -> str:
    url = config.attributes.get("database_url") or context.get_x_argument(as_dictionary=True).get("database_url")
    return url or get_settings().DATABASE_URL


def _configure(**kwargs) -> None:
    url = make_url(database_url())
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite cannot ALTER most columns in place
        render_as_batch=url.get_backend_name() == "sqlite",
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit the history schema DDL as SQL instead of applying it."""
    _configure(url=database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    engine = make_engine(database_url())
    try:
        async with engine.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await engine.dispose()


def run_migrations_online() -> None:
    """Apply pending history-table revisions to the configured database."""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
