"""Notes directory scanner and reader."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import yaml

from labfiles.filesystem.frontmatter import NoteData, parse_note
from labfiles.services.datetime_service import from_timestamp

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

SKIPPED_NAMES = frozenset({"node_modules", ".obsidian", ".trash"})
IMAGE_FOLDERS = ("attachments", "images", "media")


@dataclass
class NotesSummary:
    total: int
    scanned_files: int
    total_size: int
    total_words: int


def discover_notes(notes_dir: Path) -> list[Path]:
    """Recursively find ``.md`` files, skipping hidden entries and tool folders."""
    if not notes_dir.is_dir():
        return []
    found: list[Path] = []
    pending = [notes_dir]
    while pending:
        current = pending.pop()
        for entry in sorted(current.iterdir()):
            if entry.name.startswith(".") or entry.name in SKIPPED_NAMES:
                continue
            if entry.is_dir():
                pending.append(entry)
            elif entry.is_file() and entry.name.endswith(".md"):
                found.append(entry)
    return found


@dataclass
class NotesManager:
    """Reads markdown notes from a notes directory."""

    notes_dir: Path
    default_tz: str = field(default="UTC")

    def __post_init__(self) -> None:
        self.notes_dir = self.notes_dir.resolve()

    def _validate_path(self, rel_path: str) -> Path:
        """Resolve *rel_path* inside the notes directory.

        Raises ValueError if the resolved path escapes it.
        """
        full_path = (self.notes_dir / rel_path).resolve()
        if not full_path.is_relative_to(self.notes_dir):
            raise ValueError(f"Path traversal detected: {rel_path}")
        return full_path

    def _load(self, path: Path) -> NoteData:
        rel_path = path.relative_to(self.notes_dir).as_posix()
        note = parse_note(
            path.read_text(encoding="utf-8"),
            file_name=path.name,
            relative_path=rel_path,
            default_tz=self.default_tz,
        )
        stat = path.stat()
        note.size = stat.st_size
        note.file_modified = from_timestamp(stat.st_mtime)
        if note.created is None:
            note.created = from_timestamp(getattr(stat, "st_birthtime", stat.st_ctime))
        if note.updated is None:
            note.updated = note.file_modified
        return note

    def scan_notes(self, limit: int | None = None) -> tuple[list[NoteData], NotesSummary]:
        """Parse all notes, most recently modified first.

        Notes that fail to decode or whose front matter is invalid are logged
        and skipped.
        """
        paths = discover_notes(self.notes_dir)
        notes: list[NoteData] = []
        for path in paths:
            try:
                notes.append(self._load(path))
            except (yaml.YAMLError, UnicodeDecodeError, OSError):
                logger.exception("Skipping note %s due to parse error", path)
                continue
        notes.sort(key=lambda n: n.file_modified or from_timestamp(0), reverse=True)
        if limit is not None:
            notes = notes[:limit]
        summary = NotesSummary(
            total=len(notes),
            scanned_files=len(paths),
            total_size=sum(n.size for n in notes),
            total_words=sum(n.word_count for n in notes),
        )
        return notes, summary

    def read_note(self, rel_path: str) -> NoteData | None:
        """Read a single note by relative path. Returns None if it does not exist."""
        full_path = self._validate_path(rel_path)
        if not full_path.is_file():
            return None
        return self._load(full_path)

    def find_image(self, rel_path: str) -> Path | None:
        """Locate an image referenced from a note.

        Looks at *rel_path* itself, then ``assets/`` for bare file names, then
        the ``attachments``, ``images`` and ``media`` folders. Only files with
        an ``image/*`` type are returned. Raises ValueError if *rel_path*
        escapes the notes directory.
        """
        self._validate_path(rel_path)
        candidates = [rel_path]
        if "/" not in rel_path:
            candidates.append(f"assets/{rel_path}")
        candidates.extend(f"{folder}/{rel_path}" for folder in IMAGE_FOLDERS)
        for candidate in candidates:
            try:
                path = self._validate_path(candidate)
            except ValueError:
                continue
            content_type, _ = mimetypes.guess_type(path.name)
            if path.is_file() and (content_type or "").startswith("image/"):
                return path
        return None
