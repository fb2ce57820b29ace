"""Inbound ports - API contracts for the metadata repositories.

Inbound ports define the interfaces the reconciliation engine and other
callers use to read and write buckets, objects and multipart records.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol, TypeVar

from orphan_sweeper.domain.entities.bucket import BucketInfo
from orphan_sweeper.domain.entities.multipart import MultipartPart, MultipartUpload
from orphan_sweeper.domain.entities.object import ObjectInfo

T_co = TypeVar("T_co", covariant=True)


# =============================================================================
# Errors
# =============================================================================


class MetadataError(Exception):
    """Raised when a repository operation fails."""

    pass


class AlreadyExistsError(MetadataError):
    """Raised by create-if-absent when the key is already present."""

    def __init__(self, key: bytes) -> None:
        self.key = key
        super().__init__(f"key {key.decode(errors='replace')} has existed")


class NotFoundError(MetadataError):
    """Raised when an operation requires a key that is absent."""

    def __init__(self, key: bytes) -> None:
        self.key = key
        super().__init__(f"key {key.decode(errors='replace')} does not exist")


class DecodeError(MetadataError):
    """Raised when a stored value cannot be parsed as its record type."""

    def __init__(self, key: bytes, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"cannot decode value of {key.decode(errors='replace')}: {reason}")


# =============================================================================
# Record Cursor
# =============================================================================


class RecordCursor(Protocol[T_co]):
    """Forward-only cursor yielding decoded records.

    Each cursor holds its own transaction snapshot and must be closed
    exactly once, including on early exit.

    Example:
        with repo.iterate_bucket("photos") as cursor:
            while cursor.valid():
                obj = cursor.value()
                if obj is not None:
                    ...
                cursor.next()
    """

    @abstractmethod
    def valid(self) -> bool:
        """Return True while positioned on an entry."""
        ...

    @abstractmethod
    def next(self) -> None:
        """Advance to the next entry."""
        ...

    @abstractmethod
    def key(self) -> bytes:
        """Return the current key."""
        ...

    @abstractmethod
    def value(self) -> T_co | None:
        """Return the decoded current value, or None if it does not decode."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the cursor and its transaction."""
        ...

    def __enter__(self) -> RecordCursor[T_co]:
        ...

    def __exit__(self, *exc: object) -> None:
        ...


# =============================================================================
# Bucket Repository Port
# =============================================================================


class BucketRepositoryPort(Protocol):
    """Protocol for bucket metadata."""

    @abstractmethod
    def create(self, info: BucketInfo) -> None:
        """Create a bucket.

        Raises:
            AlreadyExistsError: If a bucket with the same name exists.
        """
        ...

    @abstractmethod
    def get(self, name: str) -> BucketInfo | None:
        """Get a bucket, or None if absent."""
        ...

    @abstractmethod
    def delete(self, name: str) -> None:
        """Hard-delete a bucket."""
        ...

    @abstractmethod
    def list(self, limit: int = -1) -> list[BucketInfo]:
        """List buckets; a negative limit lists all of them."""
        ...

    @abstractmethod
    def iterate(self) -> RecordCursor[BucketInfo]:
        """Open a cursor over every bucket."""
        ...


# =============================================================================
# Object Repository Port
# =============================================================================


class ObjectRepositoryPort(Protocol):
    """Protocol for live and tombstoned object metadata."""

    @abstractmethod
    def get(self, bucket: str, name: str) -> ObjectInfo | None:
        """Get a live object, or None if absent."""
        ...

    @abstractmethod
    def save(self, info: ObjectInfo) -> None:
        """Write an object, tombstoning the version it replaces."""
        ...

    @abstractmethod
    def mark_deleted(self, bucket: str, name: str) -> None:
        """Tombstone and remove a live object.

        Raises:
            NotFoundError: If the object does not exist.
        """
        ...

    @abstractmethod
    def iterate_bucket(self, bucket: str) -> RecordCursor[ObjectInfo]:
        """Open a cursor over the live objects of one bucket."""
        ...

    @abstractmethod
    def iterate_deleted(self) -> RecordCursor[ObjectInfo]:
        """Open a cursor over every tombstoned object."""
        ...


# =============================================================================
# Multipart Repository Port
# =============================================================================


class MultipartRepositoryPort(Protocol):
    """Protocol for multipart fragment and upload records."""

    @abstractmethod
    def get(self, bucket: str, name: str) -> MultipartPart | None:
        """Get a fragment record, or None if absent."""
        ...

    @abstractmethod
    def get_upload(self, bucket: str, upload_id: str) -> MultipartUpload | None:
        """Get an upload-level record, or None if absent."""
        ...

    @abstractmethod
    def iterate(self) -> RecordCursor[MultipartPart]:
        """Open a cursor over every live multipart record."""
        ...


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Errors
    "MetadataError",
    "AlreadyExistsError",
    "NotFoundError",
    "DecodeError",
    # Cursor
    "RecordCursor",
    # Repositories
    "BucketRepositoryPort",
    "ObjectRepositoryPort",
    "MultipartRepositoryPort",
]
