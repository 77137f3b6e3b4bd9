"""Sync service: reconcile the watched directory with file records.

Two modes share the same primitives:

- **full sync** diffs the whole directory listing against every active record
  under the watched prefix and classifies each file as created, updated,
  unchanged or deleted;
- **incremental sync** only looks at files modified after a watermark, plus
  the active records touched since then. A file removed from disk whose
  record has not been touched since the watermark is not noticed; full sync
  is the authoritative pass.

Each store mutation is committed independently. A failure aborts the run
and leaves earlier mutations committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from labfiles.exceptions import DirectoryNotFoundError, StoreOperationError
from labfiles.filesystem.scanner import list_disk_files, resolve_disk_path
from labfiles.models.record import RecordStatus
from labfiles.services.datetime_service import ensure_utc, now_utc

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from datetime import datetime
    from pathlib import Path

    from labfiles.filesystem.scanner import DiskFile
    from labfiles.models.record import FileRecord
    from labfiles.services.record_store import RecordStore

logger = logging.getLogger(__name__)


class ChangeType(StrEnum):
    """Classification of a file after reconciliation."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    UNCHANGED = "unchanged"


@dataclass
class SyncItem:
    """A single classified record."""

    action: ChangeType
    record: FileRecord


@dataclass
class SyncSummary:
    """Counts for a sync run. ``unchanged`` is None for incremental runs."""

    total: int
    created: int
    updated: int
    deleted: int
    unchanged: int | None = None


@dataclass
class SyncResult:
    """Classified outcome of a reconciliation pass."""

    total: int = 0
    created: list[SyncItem] = field(default_factory=list)
    updated: list[SyncItem] = field(default_factory=list)
    deleted: list[SyncItem] = field(default_factory=list)
    unchanged: list[SyncItem] | None = None

    def add(self, action: ChangeType, record: FileRecord) -> None:
        bucket = {
            ChangeType.CREATED: self.created,
            ChangeType.UPDATED: self.updated,
            ChangeType.DELETED: self.deleted,
        }.get(action)
        if bucket is None:
            if self.unchanged is None:
                self.unchanged = []
            bucket = self.unchanged
        bucket.append(SyncItem(action=action, record=record))

    @property
    def summary(self) -> SyncSummary:
        return SyncSummary(
            total=self.total,
            created=len(self.created),
            updated=len(self.updated),
            deleted=len(self.deleted),
            unchanged=None if self.unchanged is None else len(self.unchanged),
        )


@dataclass
class SyncOutcome:
    """Tagged result handed to callers: either a result or an error message."""

    success: bool
    result: SyncResult | None = None
    error: str | None = None
    error_kind: type[Exception] | None = None


def is_newer(modified_time: datetime, recorded_at: datetime) -> bool:
    """True when the file mtime is strictly later than the record timestamp.

    Equal timestamps count as unchanged so that a second full sync right
    after the first reports no updates.
    """
    return ensure_utc(modified_time) > ensure_utc(recorded_at)


def auto_description(relative_path: str) -> str:
    return f"Auto-synced file from {relative_path}"


class Reconciler:
    """Reconciles one watched directory against the record store.

    *root* is the directory on disk; *prefix* is the logical subfolder
    (e.g. ``"test/"``) that every synced record's relative path starts with.
    Records outside the prefix are never read or written.
    """

    def __init__(self, store: RecordStore, root: Path, prefix: str) -> None:
        self.store = store
        self.root = root
        self.prefix = prefix

    async def full_sync(self) -> SyncResult:
        """Bring active records under the prefix into agreement with the disk."""
        disk_files = list_disk_files(self.root, self.prefix)

        existing = await self.store.find_many(prefix=self.prefix, active_only=True)
        pending: dict[str, FileRecord] = {}
        for record in existing:
            if record.relative_path:
                pending[record.relative_path] = record

        result = SyncResult(total=len(disk_files), unchanged=[])
        for disk_file in disk_files:
            record = pending.pop(disk_file.relative_path, None)
            if record is None:
                result.add(ChangeType.CREATED, await self._create(disk_file))
            elif is_newer(disk_file.modified_time, record.updated_at):
                updated = await self.store.update(record.id, updated_at=now_utc())
                result.add(ChangeType.UPDATED, updated)
            else:
                result.add(ChangeType.UNCHANGED, record)

        # Whatever was not matched on disk is gone.
        for record in pending.values():
            result.add(ChangeType.DELETED, await self._soft_delete(record))

        self._log_summary("Full", result)
        return result

    async def incremental_sync(self, last_sync_time: datetime | None) -> SyncResult:
        """Reconcile only what plausibly changed since *last_sync_time*.

        Without a watermark this is a full sync.
        """
        if last_sync_time is None:
            return await self.full_sync()

        since = ensure_utc(last_sync_time)
        candidates = [
            f for f in list_disk_files(self.root, self.prefix) if is_newer(f.modified_time, since)
        ]

        result = SyncResult(total=len(candidates))
        for disk_file in candidates:
            record = await self.store.find_by_path(disk_file.relative_path)
            if record is None:
                result.add(ChangeType.CREATED, await self._create(disk_file))
            else:
                refreshed = await self.store.update(
                    record.id,
                    updated_at=now_utc(),
                    is_active=True,
                    status=RecordStatus.ACTIVE.value,
                )
                result.add(ChangeType.UPDATED, refreshed)

        # Only records touched since the watermark are checked for deletion.
        touched = await self.store.find_many(
            prefix=self.prefix, active_only=True, updated_since=since
        )
        for record in touched:
            if not record.relative_path:
                continue
            if self._exists_on_disk(record.relative_path) is False:
                result.add(ChangeType.DELETED, await self._soft_delete(record))

        self._log_summary("Incremental", result)
        return result

    async def _create(self, disk_file: DiskFile) -> FileRecord:
        return await self.store.create(
            title=disk_file.name,
            description=auto_description(disk_file.relative_path),
            relative_path=disk_file.relative_path,
            status=RecordStatus.ACTIVE.value,
        )

    async def _soft_delete(self, record: FileRecord) -> FileRecord:
        logger.info(
            "File %s is gone from disk, soft-deleting record %d", record.relative_path, record.id
        )
        return await self.store.update(
            record.id,
            is_active=False,
            status=RecordStatus.DELETED.value,
            updated_at=now_utc(),
        )

    def _exists_on_disk(self, relative_path: str) -> bool | None:
        """Return whether the file is on disk, or None when the path cannot be mapped."""
        try:
            return resolve_disk_path(self.root, self.prefix, relative_path).exists()
        except ValueError:
            logger.warning("Record path %s cannot be mapped to disk, skipping", relative_path)
            return None

    def _log_summary(self, mode: str, result: SyncResult) -> None:
        s = result.summary
        logger.info(
            "%s sync of %s: total=%d created=%d updated=%d deleted=%d unchanged=%s",
            mode,
            self.root,
            s.total,
            s.created,
            s.updated,
            s.deleted,
            "-" if s.unchanged is None else s.unchanged,
        )


async def run_full_sync(reconciler: Reconciler) -> SyncOutcome:
    """Run a full sync and turn domain failures into a failure outcome."""
    return await _run(reconciler.full_sync(), "full")


async def run_incremental_sync(
    reconciler: Reconciler, last_sync_time: datetime | None
) -> SyncOutcome:
    """Run an incremental sync and turn domain failures into a failure outcome."""
    return await _run(reconciler.incremental_sync(last_sync_time), "incremental")


async def _run(pending: Coroutine[Any, Any, SyncResult], mode: str) -> SyncOutcome:
    try:
        result = await pending
    except DirectoryNotFoundError as exc:
        logger.error("Cannot run %s sync: %s", mode, exc)
        return SyncOutcome(
            success=False,
            error="Raw data directory does not exist",
            error_kind=DirectoryNotFoundError,
        )
    except StoreOperationError as exc:
        logger.error("%s sync aborted by store failure: %s", mode.capitalize(), exc, exc_info=exc)
        return SyncOutcome(
            success=False,
            error=f"Failed to {mode} sync data files",
            error_kind=StoreOperationError,
        )
    except OSError as exc:
        logger.error(
            "%s sync aborted by filesystem error: %s", mode.capitalize(), exc, exc_info=exc
        )
        return SyncOutcome(
            success=False,
            error=f"Failed to {mode} sync data files",
            error_kind=OSError,
        )
    return SyncOutcome(success=True, result=result)
