"""File record schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from labfiles.models.record import RecordStatus
from labfiles.services.datetime_service import ensure_utc

_STATUSES = {s.value for s in RecordStatus}


def _check_status(v: str | None) -> str | None:
    if v is not None and v not in _STATUSES:
        allowed = ", ".join(sorted(_STATUSES))
        raise ValueError(f"Status must be one of: {allowed}")
    return v


def _check_relative_path(v: str | None) -> str | None:
    if v is None:
        return v
    if v.startswith("/") or ".." in v.split("/"):
        raise ValueError("Relative path must not be absolute or contain '..'")
    return v


class RecordResponse(BaseModel):
    """File record as returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    relative_path: str | None = None
    status: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def timestamps_are_utc(cls, v: datetime) -> datetime:
        """SQLite returns naive timestamps; they are stored as UTC."""
        _ = cls
        return ensure_utc(v)


class RecordCreate(BaseModel):
    """Request to create a record manually."""

    title: str = Field(min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=10_000)
    relative_path: str | None = Field(default=None, max_length=1000)
    status: str = RecordStatus.ACTIVE.value

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: str) -> str:
        _ = cls
        _check_status(v)
        return v

    @field_validator("relative_path")
    @classmethod
    def relative_path_must_be_safe(cls, v: str | None) -> str | None:
        _ = cls
        return _check_relative_path(v)


class RecordUpdate(BaseModel):
    """Partial update of a record. Omitted fields are left as they are."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=10_000)
    relative_path: str | None = Field(default=None, max_length=1000)
    status: str | None = None

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: str | None) -> str | None:
        _ = cls
        return _check_status(v)

    @field_validator("relative_path")
    @classmethod
    def relative_path_must_be_safe(cls, v: str | None) -> str | None:
        _ = cls
        return _check_relative_path(v)


class FileInfoResponse(BaseModel):
    """Filesystem metadata of a record's file."""

    relative_path: str
    size: int = Field(ge=0)
    created: datetime
    modified: datetime
    content_type: str


class UploadResponse(BaseModel):
    """Result of a single file upload."""

    record: RecordResponse
    file_name: str
    file_size: int = Field(ge=0)
    file_type: str | None = None


class UploadItemResult(BaseModel):
    """Outcome of one file in a multi-file upload."""

    success: bool
    file_name: str
    original_name: str | None = None
    file_size: int | None = None
    record: RecordResponse | None = None
    error: str | None = None


class UploadSummary(BaseModel):
    total: int = Field(ge=0)
    successful: int = Field(ge=0)
    failed: int = Field(ge=0)


class MultiUploadResponse(BaseModel):
    """Result of a multi-file upload."""

    results: list[UploadItemResult]
    summary: UploadSummary


class PreviewInfoResponse(BaseModel):
    """Preview metadata of a record's file."""

    id: int
    file_name: str
    relative_path: str
    description: str | None = None
    size: int = Field(ge=0)
    content_type: str
    extension: str
    kind: str
    is_previewable: bool
    modified: datetime
    created_at: datetime


class PreviewContentResponse(BaseModel):
    """Previewable content of a record's file.

    Text files carry ``content``; images and PDFs small enough to inline carry
    a ``data_url``; everything else points at ``url`` for streaming.
    """

    kind: str
    content: str | None = None
    lines: int | None = None
    encoding: str | None = None
    truncated: bool = False
    data_url: str | None = None
    url: str | None = None


class DownloadManifestRequest(BaseModel):
    """Records to gather for a multi-file download."""

    record_ids: list[int] = Field(min_length=1, max_length=500)


class DownloadManifestEntry(BaseModel):
    id: int
    name: str
    size: int = Field(ge=0)
    content_type: str
    relative_path: str
    download_url: str


class DownloadManifestResponse(BaseModel):
    """Files a multi-file download would fetch, and those that are missing."""

    files: list[DownloadManifestEntry]
    total_size: int = Field(ge=0)
    is_single_file: bool
    missing_files: list[str] = Field(default_factory=list)
