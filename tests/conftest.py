"""Shared test fixtures for Labfiles."""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from labfiles.config import Settings
from labfiles.database import init_schema
from labfiles.main import create_app, init_app_state
from labfiles.services.datetime_service import now_utc

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

RAW_RELATIVE_PATH = "lab/raw_data/test"
PREFIX = "test/"


def write_file(
    directory: Path, name: str, content: str = "data", mtime: datetime | None = None
) -> Path:
    """Write a file and pin its modification time."""
    path = directory / name
    path.write_text(content)
    if mtime is not None:
        ts = mtime.timestamp()
        os.utime(path, (ts, ts))
    return path


def hours_ago(hours: float) -> datetime:
    return now_utc() - timedelta(hours=hours)


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Performs the startup work of the lifespan because ASGITransport does not
    trigger it.
    """
    app = create_app(settings)
    settings.validate_runtime()
    await init_app_state(app)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await app.state.engine.dispose()


@pytest.fixture
def raw_dir(tmp_path: Path) -> Path:
    """The watched raw data directory, created empty."""
    path = tmp_path / "data" / RAW_RELATIVE_PATH
    path.mkdir(parents=True)
    return path


@pytest.fixture
def notes_dir(tmp_path: Path) -> Path:
    path = tmp_path / "notes"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(tmp_path: Path, raw_dir: Path, notes_dir: Path) -> Settings:
    """Create test settings with temporary paths."""
    _ = raw_dir
    db_path = tmp_path / "db" / "test.db"
    return Settings(
        _env_file=None,
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        raw_data_base_path=tmp_path / "data",
        raw_data_relative_path=RAW_RELATIVE_PATH,
        watched_prefix=PREFIX,
        notes_dir=notes_dir,
    )


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with the schema in place."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'unit.db'}",
        echo=False,
    )
    await init_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(
    db_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(test_settings: Settings) -> AsyncGenerator[AsyncClient]:
    async with create_test_client(test_settings) as ac:
        yield ac
