from __future__ import annotations
"""SQLAlchemy 2.0 async database engine and session management.

SQLite (aiosqlite) is the default for single-node deployments; any async
SQLAlchemy URL works. WAL journaling is enabled on SQLite so polling readers
do not block the webhook writer.
"""

import logging
import os

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from mediaforge.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _is_sqlite(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with dialect-appropriate pool settings."""
    if _is_sqlite(url):
        database = make_url(url).database
        if database and database != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(database)), exist_ok=True)
        new_engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(new_engine.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_connection, _record):  # pragma: no cover - driver hook
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

        return new_engine

    return create_async_engine(
        url,
        echo=echo,
        pool_recycle=3600,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = make_engine(settings.DATABASE_URL, echo=settings.DEBUG)

async_session_factory = make_session_factory(engine)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables defined by Base metadata (best-effort).

    Alembic owns the schema in production; this keeps fresh SQLite
    deployments and tests working without a migration step.
    """
    import mediaforge.models  # noqa: F401  (registers models)

    try:
        async with (bind or engine).begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.warning("Could not run create_all (tables may already exist): %s", e)


async def close_db(bind: AsyncEngine | None = None) -> None:
    """Dispose of the engine connection pool.

    Called at application shutdown.
    """
    await (bind or engine).dispose()
