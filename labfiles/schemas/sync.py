"""Sync-related schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from labfiles.schemas.record import RecordResponse


class SyncRequest(BaseModel):
    """Request for an incremental sync."""

    last_sync_time: datetime | None = Field(
        default=None,
        description="Watermark; files modified after it are reconciled. Omit for a full sync.",
    )


class SyncItemResponse(BaseModel):
    """A classified record."""

    action: str
    record: RecordResponse


class SyncData(BaseModel):
    """Per-item classification lists."""

    created: list[SyncItemResponse] = Field(default_factory=list)
    updated: list[SyncItemResponse] = Field(default_factory=list)
    deleted: list[SyncItemResponse] = Field(default_factory=list)
    unchanged: list[SyncItemResponse] | None = None


class SyncSummaryResponse(BaseModel):
    """Counts for a sync run."""

    total: int = Field(ge=0)
    created: int = Field(ge=0)
    updated: int = Field(ge=0)
    deleted: int = Field(ge=0)
    unchanged: int | None = Field(default=None, ge=0)


class SyncResponse(BaseModel):
    """Tagged sync result: ``data``/``summary`` on success, ``error`` on failure."""

    success: bool
    error: str | None = None
    data: SyncData | None = None
    summary: SyncSummaryResponse | None = None
