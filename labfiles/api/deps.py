"""Shared API dependencies: settings, DB session, record store, reconciler."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from labfiles.config import Settings
from labfiles.filesystem.notes_manager import NotesManager
from labfiles.services.record_store import RecordStore
from labfiles.services.sync_service import Reconciler


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_notes_manager(request: Request) -> NotesManager:
    """Get notes manager from app state."""
    nm: NotesManager = request.app.state.notes_manager
    return nm


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


def get_record_store(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> RecordStore:
    """Wrap the request session in a record store."""
    return RecordStore(session)


def get_reconciler(
    store: Annotated[RecordStore, Depends(get_record_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Reconciler:
    """Build a reconciler for the configured raw data directory."""
    return Reconciler(store, settings.raw_data_dir, settings.watched_prefix)
