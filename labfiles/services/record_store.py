"""Record store: the persistence boundary consumed by the reconciler."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from labfiles.exceptions import RecordConflictError, StoreOperationError
from labfiles.models.record import FileRecord
from labfiles.services.datetime_service import ensure_utc

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class RecordStore:
    """Async access to ``FileRecord`` rows through an injected session.

    Every write is committed on its own, so a failure part-way through a
    sync leaves earlier writes in place. Any SQLAlchemy failure is raised as
    ``StoreOperationError`` after rolling back the failed statement; a unique
    path violation is raised as its ``RecordConflictError`` subclass.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_many(
        self,
        *,
        prefix: str | None = None,
        active_only: bool = True,
        updated_since: datetime | None = None,
    ) -> list[FileRecord]:
        """Return records filtered by path prefix, activity and ``updated_at >= updated_since``."""
        stmt = select(FileRecord)
        if active_only:
            stmt = stmt.where(FileRecord.is_active.is_(True))
        if prefix is not None:
            # LIKE is case-insensitive on SQLite, so compare the leading slice instead.
            stmt = stmt.where(func.substr(FileRecord.relative_path, 1, len(prefix)) == prefix)
        if updated_since is not None:
            stmt = stmt.where(FileRecord.updated_at >= ensure_utc(updated_since))
        stmt = stmt.order_by(FileRecord.id)
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"Failed to query records: {exc}") from exc
        return list(result.scalars().all())

    async def find_by_path(self, relative_path: str) -> FileRecord | None:
        """Point lookup by relative path, active or not.

        An active row wins over soft-deleted ones; among equals the newest id wins.
        """
        stmt = (
            select(FileRecord)
            .where(FileRecord.relative_path == relative_path)
            .order_by(FileRecord.is_active.desc(), FileRecord.id.desc())
            .limit(1)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"Failed to look up {relative_path}: {exc}") from exc
        return result.scalar_one_or_none()

    async def get(self, record_id: int) -> FileRecord | None:
        """Fetch a record by primary key."""
        try:
            return await self._session.get(FileRecord, record_id)
        except SQLAlchemyError as exc:
            raise StoreOperationError(f"Failed to load record {record_id}: {exc}") from exc

    async def create(self, **fields: Any) -> FileRecord:
        """Insert and commit a new record."""
        record = FileRecord(**fields)
        self._session.add(record)
        await self._commit(f"create {fields.get('relative_path') or fields.get('title')}")
        return record

    async def update(self, record_id: int, **fields: Any) -> FileRecord:
        """Apply *fields* to an existing record and commit."""
        record = await self.get(record_id)
        if record is None:
            raise StoreOperationError(f"Record {record_id} does not exist")
        for name, value in fields.items():
            setattr(record, name, value)
        await self._commit(f"update record {record_id}")
        return record

    async def _commit(self, what: str) -> None:
        try:
            await self._session.commit()
        except IntegrityError as exc:
            logger.warning("Record store refused to %s: %s", what, exc)
            await self._session.rollback()
            raise RecordConflictError(f"Failed to {what}: path already in use") from exc
        except SQLAlchemyError as exc:
            logger.error("Record store failed to %s: %s", what, exc)
            await self._session.rollback()
            raise StoreOperationError(f"Failed to {what}") from exc
