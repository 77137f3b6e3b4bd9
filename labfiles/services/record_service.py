"""Record service: manual CRUD, file lookup, previews, and uploads for file records."""

from __future__ import annotations

import base64
import logging
import mimetypes
import time
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from labfiles.filesystem.scanner import resolve_disk_path
from labfiles.models.record import FileRecord, RecordStatus
from labfiles.services.datetime_service import from_timestamp, now_utc

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from labfiles.services.record_store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
MAX_TEXT_PREVIEW_BYTES = 1024 * 1024
MAX_INLINE_PREVIEW_BYTES = 10 * 1024 * 1024

TEXT_LIKE_TYPES = frozenset(
    {
        "application/json",
        "application/xml",
        "application/javascript",
        "application/x-sh",
        "application/yaml",
    }
)


class PreviewKind(StrEnum):
    """How a file can be shown in the browser."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    PDF = "pdf"
    UNKNOWN = "unknown"


@dataclass
class FileInfo:
    """Filesystem metadata for a record's file."""

    path: Path
    relative_path: str
    size: int
    created: datetime
    modified: datetime
    content_type: str


def guess_content_type(path: Path | str) -> str:
    """Guess a content type from the file extension."""
    content_type, _ = mimetypes.guess_type(str(path))
    return content_type or DEFAULT_CONTENT_TYPE


def stored_upload_name(original_name: str, timestamp_ms: int | None = None) -> str:
    """Build a collision-resistant name ``<stem>_<epoch ms><ext>`` for an upload.

    Directory components in *original_name* are dropped.
    """
    name = Path(original_name.replace("\\", "/")).name or "upload"
    stem = Path(name).stem
    suffix = Path(name).suffix
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    return f"{stem}_{timestamp_ms}{suffix}"


async def list_active_records(session: AsyncSession) -> list[FileRecord]:
    """All active records, newest first."""
    stmt = (
        select(FileRecord)
        .where(FileRecord.is_active.is_(True))
        .order_by(FileRecord.created_at.desc(), FileRecord.id.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_record(
    store: RecordStore,
    title: str,
    description: str | None = None,
    relative_path: str | None = None,
    status: str | None = None,
) -> FileRecord:
    """Create a record by hand."""
    return await store.create(
        title=title,
        description=description,
        relative_path=relative_path,
        status=status or RecordStatus.ACTIVE.value,
    )


async def update_record(store: RecordStore, record_id: int, **fields: Any) -> FileRecord | None:
    """Apply the given fields and bump ``updated_at``. Returns None if not found."""
    if await store.get(record_id) is None:
        return None
    return await store.update(record_id, **fields, updated_at=now_utc())


async def soft_delete_record(store: RecordStore, record_id: int) -> FileRecord | None:
    """Hide a record from default listings. Returns None if not found.

    Only the activity flag changes; ``status`` is left for the reconciler.
    """
    if await store.get(record_id) is None:
        return None
    return await store.update(record_id, is_active=False)


def record_file_path(record: FileRecord, root: Path, prefix: str) -> Path | None:
    """Resolve the file behind *record*, or None if it has no file on disk."""
    if not record.relative_path:
        return None
    try:
        path = resolve_disk_path(root, prefix, record.relative_path)
    except ValueError:
        logger.warning("Record %d has an unmappable path %s", record.id, record.relative_path)
        return None
    if not path.is_file():
        return None
    return path


def get_file_info(record: FileRecord, root: Path, prefix: str) -> FileInfo | None:
    """Stat the file behind *record*. Returns None if it has no file on disk."""
    path = record_file_path(record, root, prefix)
    if path is None or record.relative_path is None:
        return None
    stat = path.stat()
    birth = getattr(stat, "st_birthtime", stat.st_ctime)
    return FileInfo(
        path=path,
        relative_path=record.relative_path,
        size=stat.st_size,
        created=from_timestamp(birth),
        modified=from_timestamp(stat.st_mtime),
        content_type=guess_content_type(path),
    )


def preview_kind(content_type: str) -> PreviewKind:
    """Classify a content type by its major type."""
    major, _, _ = content_type.partition("/")
    if major == "text" or content_type in TEXT_LIKE_TYPES:
        return PreviewKind.TEXT
    if major in (PreviewKind.IMAGE, PreviewKind.VIDEO, PreviewKind.AUDIO):
        return PreviewKind(major)
    if content_type == "application/pdf":
        return PreviewKind.PDF
    return PreviewKind.UNKNOWN


def read_text_preview(path: Path, limit: int = MAX_TEXT_PREVIEW_BYTES) -> tuple[str, bool]:
    """Read at most *limit* bytes of *path* as UTF-8.

    Returns the text and whether the file was longer than *limit*. Bytes that
    are not valid UTF-8 are replaced rather than rejected.
    """
    with path.open("rb") as fh:
        data = fh.read(limit + 1)
    return data[:limit].decode("utf-8", errors="replace"), len(data) > limit


def data_url(path: Path, content_type: str) -> str:
    """Inline *path* as a base64 ``data:`` URL."""
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


@dataclass
class ManifestEntry:
    id: int
    name: str
    size: int
    content_type: str
    relative_path: str


@dataclass
class DownloadManifest:
    """Files that a multi-record download would fetch."""

    files: list[ManifestEntry] = field(default_factory=list)
    missing_files: list[str] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)

    @property
    def is_single_file(self) -> bool:
        return len(self.files) == 1


async def load_active_records(store: RecordStore, record_ids: Iterable[int]) -> list[FileRecord]:
    """Active records among *record_ids*, in request order and without repeats."""
    records: list[FileRecord] = []
    for record_id in dict.fromkeys(record_ids):
        record = await store.get(record_id)
        if record is not None and record.is_active:
            records.append(record)
    return records


def build_download_manifest(
    records: Iterable[FileRecord], root: Path, prefix: str
) -> DownloadManifest:
    """List the files behind *records*.

    Records without a readable file on disk are reported by title in
    ``missing_files`` instead.
    """
    manifest = DownloadManifest()
    for record in records:
        path = record_file_path(record, root, prefix)
        if path is None or record.relative_path is None:
            manifest.missing_files.append(record.title)
            continue
        try:
            size = path.stat().st_size
        except OSError as exc:
            logger.warning("Cannot stat %s for record %d: %s", path, record.id, exc)
            manifest.missing_files.append(record.title)
            continue
        manifest.files.append(
            ManifestEntry(
                id=record.id,
                name=record.title or path.name,
                size=size,
                content_type=guess_content_type(path),
                relative_path=record.relative_path,
            )
        )
    return manifest


async def store_upload(
    store: RecordStore,
    root: Path,
    prefix: str,
    original_name: str,
    data: bytes,
    title: str | None = None,
    description: str | None = None,
) -> tuple[FileRecord, str]:
    """Write an uploaded file into the raw data directory and record it.

    Returns the new record and the stored file name. If the record cannot be
    created the written file is removed again.
    """
    root.mkdir(parents=True, exist_ok=True)
    stamp = time.time_ns() // 1_000_000
    file_name = stored_upload_name(original_name, stamp)
    target = root / file_name
    while target.exists():
        stamp += 1
        file_name = stored_upload_name(original_name, stamp)
        target = root / file_name
    target.write_bytes(data)
    logger.info("Stored upload %s (%d bytes)", target, len(data))

    try:
        record = await store.create(
            title=title or original_name,
            description=description or f"Uploaded file: {original_name}",
            relative_path=f"{prefix}{file_name}",
            status=RecordStatus.ACTIVE.value,
        )
    except Exception:
        target.unlink(missing_ok=True)
        raise
    return record, file_name
