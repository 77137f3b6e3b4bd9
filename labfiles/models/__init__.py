"""SQLAlchemy ORM models for Labfiles."""

from labfiles.models.base import Base
from labfiles.models.record import FileRecord, RecordStatus
from labfiles.models.saw import SawItem, SawType

__all__ = [
    "Base",
    "FileRecord",
    "RecordStatus",
    "SawItem",
    "SawType",
]
