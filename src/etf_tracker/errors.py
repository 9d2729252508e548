"""Error types raised by the tracker core."""

from enum import Enum
from pathlib import Path


class TrackerError(Exception):
    """Base class for tracker errors."""


class ValidationError(TrackerError):
    """Caller supplied an invalid range or asked for a date with no data."""

    def __init__(self, message: str, field: str | None = None, value: object = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class StorageOperation(str, Enum):
    """The storage operation that was being attempted."""

    READ = "read"
    WRITE = "write"
    CREATE = "create"
    DELETE = "delete"


class StorageError(TrackerError):
    """The persistence medium could not be read, written, created or deleted."""

    def __init__(
        self,
        message: str,
        operation: StorageOperation,
        path: Path | str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.path = str(path) if path is not None else None

    @classmethod
    def read_error(cls, path: Path | str) -> "StorageError":
        return cls(f"Failed to read {path}", StorageOperation.READ, path)

    @classmethod
    def write_error(cls, path: Path | str) -> "StorageError":
        return cls(f"Failed to write {path}", StorageOperation.WRITE, path)

    @classmethod
    def create_error(cls, path: Path | str) -> "StorageError":
        return cls(f"Failed to create {path}", StorageOperation.CREATE, path)

    @classmethod
    def delete_error(cls, path: Path | str) -> "StorageError":
        return cls(f"Failed to delete from {path}", StorageOperation.DELETE, path)

    def __str__(self) -> str:
        return f"{super().__str__()} (operation={self.operation.value})"


class FetchError(TrackerError):
    """A snapshot fetcher failed to produce a snapshot."""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source
