"""Watched-directory scanner producing disk file snapshots."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from labfiles.exceptions import DirectoryNotFoundError
from labfiles.services.datetime_service import from_timestamp

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiskFile:
    """A regular file observed in the watched directory."""

    name: str
    relative_path: str
    modified_time: datetime
    size: int


def ensure_directory(root: Path) -> None:
    """Raise DirectoryNotFoundError unless *root* is an existing directory."""
    if not root.is_dir():
        raise DirectoryNotFoundError(root)


def list_disk_files(root: Path, prefix: str) -> list[DiskFile]:
    """List regular files directly inside *root*.

    Subdirectories are skipped, dot-files are not. Each file's relative path
    is ``prefix + name``. Stat failures propagate.
    """
    ensure_directory(root)
    files: list[DiskFile] = []
    with os.scandir(root) as it:
        for entry in it:
            if not entry.is_file():
                continue
            stat = entry.stat()
            files.append(
                DiskFile(
                    name=entry.name,
                    relative_path=f"{prefix}{entry.name}",
                    modified_time=from_timestamp(stat.st_mtime),
                    size=stat.st_size,
                )
            )
    files.sort(key=lambda f: f.name)
    logger.debug("Scanned %d files in %s", len(files), root)
    return files


def resolve_disk_path(root: Path, prefix: str, relative_path: str) -> Path:
    """Map a record's relative path back to its location under *root*.

    Raises ValueError if the path is outside the watched prefix or escapes
    the root directory.
    """
    if not relative_path.startswith(prefix):
        raise ValueError(f"Path is outside the watched prefix: {relative_path}")
    name = relative_path.removeprefix(prefix)
    full_path = (root / name).resolve()
    if not name or not full_path.is_relative_to(root.resolve()):
        raise ValueError(f"Path traversal detected: {relative_path}")
    return full_path
