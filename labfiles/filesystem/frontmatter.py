"""YAML front matter parsing for markdown notes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import frontmatter

from labfiles.services.datetime_service import parse_datetime

_WORD_SPLIT = re.compile(r"\s+")


@dataclass
class NoteData:
    """A parsed markdown note."""

    file_name: str
    relative_path: str
    title: str
    content: str
    front_matter: dict[str, Any] = field(default_factory=dict)
    created: datetime | None = None
    updated: datetime | None = None
    file_modified: datetime | None = None
    size: int = 0
    word_count: int = 0


def count_words(content: str) -> int:
    """Approximate word count: whitespace-separated tokens."""
    return len([w for w in _WORD_SPLIT.split(content) if w])


def coerce_datetime(value: object, default_tz: str = "UTC") -> datetime | None:
    """Turn a front matter date value into a datetime, or None if unusable.

    YAML already yields ``date``/``datetime`` for unquoted values; strings go
    through the lax parser.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return parse_datetime(value, default_tz=default_tz)
    if isinstance(value, date):
        return parse_datetime(
            datetime(value.year, value.month, value.day), default_tz=default_tz
        )
    try:
        return parse_datetime(str(value), default_tz=default_tz)
    except ValueError:
        return None


def title_from_file_name(file_name: str) -> str:
    return file_name.removesuffix(".md")


def parse_note(
    raw_content: str,
    file_name: str,
    relative_path: str,
    default_tz: str = "UTC",
) -> NoteData:
    """Parse markdown with optional YAML front matter.

    ``title``, ``created`` and ``updated`` are read from the front matter;
    the title falls back to the file name.
    """
    post = frontmatter.loads(raw_content)
    metadata = dict(post.metadata)
    title = metadata.get("title")
    return NoteData(
        file_name=file_name,
        relative_path=relative_path,
        title=str(title) if title else title_from_file_name(file_name),
        content=post.content,
        front_matter=metadata,
        created=coerce_datetime(metadata.get("created"), default_tz),
        updated=coerce_datetime(metadata.get("updated"), default_tz),
        word_count=count_words(post.content),
    )
