"""Transactional key-value store port.

This outbound port defines the narrow contract the sweeper needs from the
external metadata store: snapshot-isolated transactions with point
reads/writes and forward range cursors.

Key guarantees expected of implementations:
- All operations of one transaction observe a single consistent snapshot
- commit() is atomic; a failed commit leaves the store unchanged
- scan(lo, hi) yields keys in ascending byte order, ``lo <= key < hi``
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol


class KVCursor(Protocol):
    """Forward-only cursor over a key range.

    Thread Safety:
        Not thread-safe. A cursor belongs to exactly one caller.
    """

    @abstractmethod
    def valid(self) -> bool:
        """Return True while the cursor is positioned on an entry."""
        ...

    @abstractmethod
    def next(self) -> None:
        """Advance to the next entry.

        Raises:
            StoreError: If fetching the next entry fails.
        """
        ...

    @abstractmethod
    def key(self) -> bytes:
        """Return the key of the current entry."""
        ...

    @abstractmethod
    def value(self) -> bytes:
        """Return the raw value of the current entry."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the cursor's resources."""
        ...


class KVTransaction(Protocol):
    """A snapshot-isolated transaction.

    Writes are buffered until commit(). Reads see the snapshot taken at
    begin() plus the transaction's own writes.
    """

    @abstractmethod
    def get(self, key: bytes) -> bytes | None:
        """Read a key.

        Returns:
            The stored value, or None if the key does not exist.

        Raises:
            StoreError: On transport or transaction failure.
        """
        ...

    @abstractmethod
    def set(self, key: bytes, value: bytes) -> None:
        """Write a key."""
        ...

    @abstractmethod
    def delete(self, key: bytes) -> None:
        """Delete a key. Deleting an absent key is not an error."""
        ...

    @abstractmethod
    def scan(self, lo: bytes, hi: bytes) -> KVCursor:
        """Open a cursor over ``[lo, hi)``."""
        ...

    @abstractmethod
    def commit(self) -> None:
        """Atomically apply all buffered writes.

        Raises:
            WriteConflictError: If a concurrent transaction committed a
                conflicting write first.
            StoreError: On any other failure.
        """
        ...

    @abstractmethod
    def rollback(self) -> None:
        """Discard the transaction. Safe to call after commit()."""
        ...


class KVStore(Protocol):
    """Handle to the transactional metadata store."""

    @abstractmethod
    def begin(self) -> KVTransaction:
        """Begin a new transaction."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the client and release its connections."""
        ...


class StoreError(Exception):
    """Raised when the metadata store fails (transport or transaction)."""

    pass


class WriteConflictError(StoreError):
    """Raised when commit loses to a concurrent conflicting write."""

    pass


class TransactionClosedError(StoreError):
    """Raised when a committed or rolled back transaction is used."""

    pass
