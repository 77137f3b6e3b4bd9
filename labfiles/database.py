"""Database engine, schema bootstrap, and session management."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from labfiles.models import Base

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from labfiles.config import Settings

logger = logging.getLogger(__name__)


def sqlite_file_path(database_url: str) -> Path | None:
    """Return the on-disk path of a file-backed SQLite URL, or None."""
    if not database_url.startswith("sqlite") or "///" not in database_url:
        return None
    raw = database_url.split("///", 1)[-1]
    if not raw or raw == ":memory:":
        return None
    return Path(raw)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    _ = connection_record
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(
    settings: Settings,
) -> tuple[
    AsyncEngine,
    async_sessionmaker[AsyncSession],
]:
    """Create async engine and session factory.

    For file-backed SQLite the parent directory is created first and foreign
    key enforcement is switched on for every connection.

    Returns (engine, session_factory) tuple.
    """
    db_path = sqlite_file_path(settings.database_url)
    if db_path is not None:
        db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
    )
    if settings.database_url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine, session_factory


async def init_schema(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet. Existing rows are kept."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug("Database schema ready (%d tables)", len(Base.metadata.tables))


async def get_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Yield an async database session."""
    async with session_factory() as session:
        yield session
