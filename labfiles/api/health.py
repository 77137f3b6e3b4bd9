"""Health check endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from labfiles import __version__
from labfiles.api.deps import get_session, get_settings
from labfiles.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    raw_data_dir: str


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    session: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Report database reachability and whether the watched directory exists."""
    db_status = "ok"
    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check database query failed", exc_info=True)
        db_status = "error"

    raw_status = "ok" if settings.raw_data_dir.is_dir() else "missing"
    healthy = db_status == "ok" and raw_status == "ok"
    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=__version__,
        database=db_status,
        raw_data_dir=raw_status,
    )
