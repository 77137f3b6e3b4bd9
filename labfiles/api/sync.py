"""Sync API endpoints: reconcile the raw data directory with file records."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from labfiles.api.deps import get_reconciler
from labfiles.exceptions import DirectoryNotFoundError
from labfiles.schemas.record import RecordResponse
from labfiles.schemas.sync import (
    SyncData,
    SyncItemResponse,
    SyncRequest,
    SyncResponse,
    SyncSummaryResponse,
)
from labfiles.services.sync_service import (
    Reconciler,
    SyncItem,
    SyncOutcome,
    run_full_sync,
    run_incremental_sync,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])

# Serialize sync runs per watched directory so that two concurrent runs
# cannot both decide that the same file has no record yet.
_sync_locks: dict[Path, asyncio.Lock] = {}


def _lock_for(root: Path) -> asyncio.Lock:
    key = root.resolve()
    lock = _sync_locks.get(key)
    if lock is None:
        lock = _sync_locks[key] = asyncio.Lock()
    return lock


def _items(items: list[SyncItem] | None) -> list[SyncItemResponse] | None:
    if items is None:
        return None
    return [
        SyncItemResponse(action=item.action, record=RecordResponse.model_validate(item.record))
        for item in items
    ]


def _to_response(outcome: SyncOutcome) -> SyncResponse | JSONResponse:
    if not outcome.success or outcome.result is None:
        status_code = 404 if outcome.error_kind is DirectoryNotFoundError else 500
        body = SyncResponse(success=False, error=outcome.error)
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))

    result = outcome.result
    summary = result.summary
    return SyncResponse(
        success=True,
        data=SyncData(
            created=_items(result.created) or [],
            updated=_items(result.updated) or [],
            deleted=_items(result.deleted) or [],
            unchanged=_items(result.unchanged),
        ),
        summary=SyncSummaryResponse(
            total=summary.total,
            created=summary.created,
            updated=summary.updated,
            deleted=summary.deleted,
            unchanged=summary.unchanged,
        ),
    )


@router.post("/full", response_model=SyncResponse)
async def full_sync(
    reconciler: Annotated[Reconciler, Depends(get_reconciler)],
) -> SyncResponse | JSONResponse:
    """Scan the raw data directory and reconcile every active record under its prefix."""
    async with _lock_for(reconciler.root):
        outcome = await run_full_sync(reconciler)
    return _to_response(outcome)


@router.post("/incremental", response_model=SyncResponse)
async def incremental_sync(
    reconciler: Annotated[Reconciler, Depends(get_reconciler)],
    body: SyncRequest | None = None,
) -> SyncResponse | JSONResponse:
    """Reconcile files modified after ``last_sync_time``; full sync when it is omitted."""
    last_sync_time = body.last_sync_time if body is not None else None
    async with _lock_for(reconciler.root):
        outcome = await run_incremental_sync(reconciler, last_sync_time)
    return _to_response(outcome)
