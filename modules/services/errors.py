"""Typed storage failures.

Store internals raise these; the public store methods catch them, log the
kind and collapse the failure into ``None``/``False``/``[]`` for callers.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional


class ErrorKind(str, Enum):
    """Failure categories reported by the stores."""

    NOT_FOUND = "not_found"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    IO_FAILURE = "io_failure"
    PARSE_FAILURE = "parse_failure"
    DUPLICATE_ID = "duplicate_id"


class StorageError(Exception):
    """Base class for storage failures."""

    kind: ErrorKind = ErrorKind.IO_FAILURE

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class NotFoundError(StorageError):
    """A source file or record does not exist."""

    kind = ErrorKind.NOT_FOUND


class CapacityExceededError(StorageError):
    """Admission or eviction could not make room for a write."""

    kind = ErrorKind.CAPACITY_EXCEEDED

    def __init__(
        self,
        message: str,
        *,
        requested: int,
        usage: int,
        ceiling: int,
        path: Optional[Path] = None,
    ) -> None:
        super().__init__(message, path=path)
        self.requested = requested
        self.usage = usage
        self.ceiling = ceiling


class StorageIOError(StorageError):
    """Underlying filesystem read or write failed."""

    kind = ErrorKind.IO_FAILURE


class ParseFailureError(StorageError):
    """The collection file is not valid serialized data."""

    kind = ErrorKind.PARSE_FAILURE


class DuplicateRecordError(StorageError):
    """A record with the same identifier is already stored."""

    kind = ErrorKind.DUPLICATE_ID
