"""Notes API endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import FileResponse

from labfiles.api.deps import get_notes_manager
from labfiles.filesystem.notes_manager import NotesManager
from labfiles.schemas.note import NoteDetail, NoteListResponse, NoteListSummary, NoteSummary

router = APIRouter(prefix="/api/notes", tags=["notes"])


@router.get("", response_model=NoteListResponse)
async def list_notes(
    notes_manager: Annotated[NotesManager, Depends(get_notes_manager)],
    limit: int | None = Query(None, ge=1, le=1000),
) -> NoteListResponse:
    """List notes, most recently modified first."""
    notes, summary = notes_manager.scan_notes(limit=limit)
    return NoteListResponse(
        notes=[NoteSummary.model_validate(asdict(n)) for n in notes],
        summary=NoteListSummary.model_validate(asdict(summary)),
    )


@router.get("/images")
async def get_note_image(
    notes_manager: Annotated[NotesManager, Depends(get_notes_manager)],
    path: str = Query(min_length=1),
) -> FileResponse:
    """Serve an image embedded in a note, looking in the usual attachment folders."""
    try:
        image = notes_manager.find_image(path)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid image path") from exc
    if image is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return FileResponse(image, headers={"Cache-Control": "public, max-age=3600"})


@router.get("/{file_path:path}", response_model=NoteDetail)
async def get_note(
    file_path: str,
    notes_manager: Annotated[NotesManager, Depends(get_notes_manager)],
) -> NoteDetail:
    """Get a single note by its path relative to the notes directory."""
    try:
        note = notes_manager.read_note(file_path)
    except UnicodeDecodeError:
        # Mapped to 422 by the global handler.
        raise
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid note path") from exc
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    data = asdict(note)
    # Front matter may hold YAML dates; make it JSON-safe.
    data["front_matter"] = jsonable_encoder(note.front_matter)
    return NoteDetail.model_validate(data)
