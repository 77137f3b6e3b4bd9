"""File record API endpoints: CRUD, uploads, previews, downloads, and streaming."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from labfiles.api.deps import get_record_store, get_session, get_settings
from labfiles.config import Settings
from labfiles.exceptions import RecordConflictError, StoreOperationError
from labfiles.models.record import FileRecord
from labfiles.schemas.record import (
    DownloadManifestEntry,
    DownloadManifestRequest,
    DownloadManifestResponse,
    FileInfoResponse,
    MultiUploadResponse,
    PreviewContentResponse,
    PreviewInfoResponse,
    RecordCreate,
    RecordResponse,
    RecordUpdate,
    UploadItemResult,
    UploadResponse,
    UploadSummary,
)
from labfiles.services.datetime_service import ensure_utc
from labfiles.services.record_service import (
    MAX_INLINE_PREVIEW_BYTES,
    PreviewKind,
    build_download_manifest,
    create_record,
    data_url,
    get_file_info,
    guess_content_type,
    list_active_records,
    load_active_records,
    preview_kind,
    read_text_preview,
    record_file_path,
    soft_delete_record,
    store_upload,
    update_record,
)
from labfiles.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/records", tags=["records"])


async def _get_or_404(store: RecordStore, record_id: int) -> FileRecord:
    record = await store.get(record_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")
    return record


async def _read_upload(upload: UploadFile, limit: int) -> bytes:
    data = await upload.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large: {upload.filename}",
        )
    return data


@router.get("", response_model=list[RecordResponse])
async def list_records(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[FileRecord]:
    """List active records, newest first."""
    return await list_active_records(session)


@router.post("", response_model=RecordResponse, status_code=201)
async def create_record_endpoint(
    body: RecordCreate,
    store: Annotated[RecordStore, Depends(get_record_store)],
) -> FileRecord:
    """Create a record by hand."""
    try:
        return await create_record(
            store,
            title=body.title,
            description=body.description,
            relative_path=body.relative_path,
            status=body.status,
        )
    except RecordConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An active record with this path already exists",
        ) from exc


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_file(
    store: Annotated[RecordStore, Depends(get_record_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    file: Annotated[UploadFile, File()],
    title: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
) -> UploadResponse:
    """Upload one file into the raw data directory and create its record."""
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")
    data = await _read_upload(file, settings.max_upload_size)
    record, file_name = await store_upload(
        store,
        settings.raw_data_dir,
        settings.watched_prefix,
        file.filename,
        data,
        title=title,
        description=description,
    )
    return UploadResponse(
        record=RecordResponse.model_validate(record),
        file_name=file_name,
        file_size=len(data),
        file_type=file.content_type,
    )


@router.post("/upload-multiple", response_model=MultiUploadResponse)
async def upload_multiple_files(
    store: Annotated[RecordStore, Depends(get_record_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    files: Annotated[list[UploadFile], File()],
) -> MultiUploadResponse:
    """Upload several files; each one succeeds or fails on its own."""
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided")

    results: list[UploadItemResult] = []
    for upload in files:
        name = upload.filename or "upload"
        try:
            data = await _read_upload(upload, settings.max_upload_size)
            record, file_name = await store_upload(
                store, settings.raw_data_dir, settings.watched_prefix, name, data
            )
        except (HTTPException, StoreOperationError, OSError) as exc:
            logger.error("Upload of %s failed: %s", name, exc)
            results.append(
                UploadItemResult(success=False, file_name=name, error=f"Failed to upload {name}")
            )
            continue
        results.append(
            UploadItemResult(
                success=True,
                file_name=file_name,
                original_name=name,
                file_size=len(data),
                record=RecordResponse.model_validate(record),
            )
        )

    successful = sum(1 for r in results if r.success)
    return MultiUploadResponse(
        results=results,
        summary=UploadSummary(
            total=len(results), successful=successful, failed=len(results) - successful
        ),
    )


@router.post("/download-manifest", response_model=DownloadManifestResponse)
async def download_manifest(
    body: DownloadManifestRequest,
    request: Request,
    store: Annotated[RecordStore, Depends(get_record_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> DownloadManifestResponse:
    """Describe the files behind several records so a client can fetch them in one go."""
    records = await load_active_records(store, body.record_ids)
    if not records:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No valid records found")
    manifest = build_download_manifest(records, settings.raw_data_dir, settings.watched_prefix)
    if not manifest.files:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No files could be downloaded"
        )
    return DownloadManifestResponse(
        files=[
            DownloadManifestEntry(
                id=entry.id,
                name=entry.name,
                size=entry.size,
                content_type=entry.content_type,
                relative_path=entry.relative_path,
                download_url=str(request.app.url_path_for("download_file", record_id=entry.id)),
            )
            for entry in manifest.files
        ],
        total_size=manifest.total_size,
        is_single_file=manifest.is_single_file,
        missing_files=manifest.missing_files,
    )


@router.get("/{record_id}", response_model=RecordResponse)
async def get_record(
    record_id: int,
    store: Annotated[RecordStore, Depends(get_record_store)],
) -> FileRecord:
    """Get a single record by id, active or not."""
    return await _get_or_404(store, record_id)


@router.put("/{record_id}", response_model=RecordResponse)
async def update_record_endpoint(
    record_id: int,
    body: RecordUpdate,
    store: Annotated[RecordStore, Depends(get_record_store)],
) -> FileRecord:
    """Update the given fields of a record."""
    fields = body.model_dump(exclude_unset=True)
    try:
        record = await update_record(store, record_id, **fields)
    except RecordConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An active record with this path already exists",
        ) from exc
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")
    return record


@router.delete("/{record_id}", response_model=RecordResponse)
async def delete_record(
    record_id: int,
    store: Annotated[RecordStore, Depends(get_record_store)],
) -> FileRecord:
    """Soft-delete a record."""
    record = await soft_delete_record(store, record_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")
    return record


@router.get("/{record_id}/file-info", response_model=FileInfoResponse)
async def file_info(
    record_id: int,
    store: Annotated[RecordStore, Depends(get_record_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> FileInfoResponse:
    """Filesystem metadata of the record's file."""
    record = await _get_or_404(store, record_id)
    info = get_file_info(record, settings.raw_data_dir, settings.watched_prefix)
    if info is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="File does not exist on disk"
        )
    return FileInfoResponse(
        relative_path=info.relative_path,
        size=info.size,
        created=info.created,
        modified=info.modified,
        content_type=info.content_type,
    )


@router.get("/{record_id}/preview", response_model=PreviewInfoResponse)
async def preview_info(
    record_id: int,
    store: Annotated[RecordStore, Depends(get_record_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> PreviewInfoResponse:
    """Describe how the record's file can be previewed."""
    record = await _get_or_404(store, record_id)
    info = get_file_info(record, settings.raw_data_dir, settings.watched_prefix)
    if info is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="File does not exist on disk"
        )
    kind = preview_kind(info.content_type)
    return PreviewInfoResponse(
        id=record.id,
        file_name=record.title or info.path.name,
        relative_path=info.relative_path,
        description=record.description,
        size=info.size,
        content_type=info.content_type,
        extension=info.path.suffix.lstrip(".").lower(),
        kind=kind,
        is_previewable=kind is not PreviewKind.UNKNOWN,
        modified=info.modified,
        created_at=ensure_utc(record.created_at),
    )


@router.get("/{record_id}/preview/content", response_model=PreviewContentResponse)
async def preview_content(
    record_id: int,
    request: Request,
    store: Annotated[RecordStore, Depends(get_record_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> PreviewContentResponse:
    """Return the record's file in a form a browser can show inline."""
    record = await _get_or_404(store, record_id)
    path = record_file_path(record, settings.raw_data_dir, settings.watched_prefix)
    if path is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="File does not exist on disk"
        )
    content_type = guess_content_type(path)
    kind = preview_kind(content_type)
    if kind is PreviewKind.UNKNOWN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Preview not supported for this file type",
        )
    if kind is PreviewKind.TEXT:
        text, truncated = read_text_preview(path)
        return PreviewContentResponse(
            kind=kind,
            content=text,
            lines=len(text.splitlines()),
            encoding="utf-8",
            truncated=truncated,
        )
    stream_url = str(request.app.url_path_for("stream_file", record_id=record.id))
    inline = kind in (PreviewKind.IMAGE, PreviewKind.PDF)
    if inline and path.stat().st_size <= MAX_INLINE_PREVIEW_BYTES:
        return PreviewContentResponse(kind=kind, data_url=data_url(path, content_type))
    return PreviewContentResponse(kind=kind, url=stream_url)


@router.get("/{record_id}/download")
async def download_file(
    record_id: int,
    store: Annotated[RecordStore, Depends(get_record_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> FileResponse:
    """Download the record's file as an attachment named after the record title."""
    record = await _get_or_404(store, record_id)
    path = record_file_path(record, settings.raw_data_dir, settings.watched_prefix)
    if path is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="File does not exist on disk"
        )
    return FileResponse(
        path,
        media_type=guess_content_type(path),
        filename=record.title or path.name,
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/{record_id}/stream")
async def stream_file(
    record_id: int,
    store: Annotated[RecordStore, Depends(get_record_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> FileResponse:
    """Serve the record's file inline. ``Range`` requests get 206 partial content."""
    record = await _get_or_404(store, record_id)
    path = record_file_path(record, settings.raw_data_dir, settings.watched_prefix)
    if path is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="File does not exist on disk"
        )
    return FileResponse(
        path,
        media_type=guess_content_type(path),
        headers={"Cache-Control": "public, max-age=31536000"},
    )
