"""Note schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NoteSummary(BaseModel):
    """Note metadata for listings."""

    file_name: str
    relative_path: str
    title: str
    created: datetime | None = None
    updated: datetime | None = None
    file_modified: datetime | None = None
    size: int = Field(ge=0)
    word_count: int = Field(ge=0)


class NoteDetail(NoteSummary):
    """Full note with body and front matter."""

    content: str
    front_matter: dict[str, Any] = Field(default_factory=dict)


class NoteListSummary(BaseModel):
    total: int = Field(ge=0)
    scanned_files: int = Field(ge=0)
    total_size: int = Field(ge=0)
    total_words: int = Field(ge=0)


class NoteListResponse(BaseModel):
    notes: list[NoteSummary]
    summary: NoteListSummary
