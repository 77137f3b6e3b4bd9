"""File record model: one row per logical file under the watched directory."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from labfiles.models.base import Base
from labfiles.services.datetime_service import now_utc


class RecordStatus(StrEnum):
    """Lifecycle status of a file record.

    The reconciler only produces ``ACTIVE`` and ``DELETED``; ``INACTIVE`` and
    ``ARCHIVED`` are set manually.
    """

    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"
    DELETED = "deleted"


class FileRecord(Base):
    """Persisted state of a file, joined to disk by ``relative_path``."""

    __tablename__ = "data_management"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    relative_path: Mapped[str | None] = mapped_column(
        "file_path_relative", Text, nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=RecordStatus.ACTIVE.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc
    )

    __table_args__ = (
        # At most one active record per relative path.
        Index(
            "uq_data_management_active_path",
            "file_path_relative",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index("idx_data_management_updated_at", "updated_at"),
    )

    def __repr__(self) -> str:
        return (
            f"FileRecord(id={self.id!r}, relative_path={self.relative_path!r}, "
            f"status={self.status!r}, is_active={self.is_active!r})"
        )
