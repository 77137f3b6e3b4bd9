"""Application-level exception types.

Convention:
- ``LabfilesError`` subclasses are domain failures with a message that is
  safe to show to the caller.  Sync orchestration turns them into a failure
  outcome; the global handlers map them to HTTP status codes.
- ``ValueError`` is for *business logic* validation errors that are safe to
  forward to clients.  The global ``ValueError`` handler returns ``str(exc)``
  as the 422 detail.
"""

from __future__ import annotations


class LabfilesError(Exception):
    """Base class for domain errors."""


class DirectoryNotFoundError(LabfilesError):
    """Raised when the watched directory does not exist.

    Sync aborts before any store mutation when this is raised.
    """

    def __init__(self, path: object) -> None:
        super().__init__(f"Directory does not exist: {path}")
        self.path = path


class StoreOperationError(LabfilesError):
    """Raised when a record store read or write fails.

    Mutations committed before the failure stay committed.
    """


class RecordConflictError(StoreOperationError):
    """Raised when a write would give two active records the same path."""
