"""In-process MVCC key-value store.

Implements the KVStore port with snapshot isolation:

    Each transaction reads the versions committed at or before the
    commit timestamp current when it began, plus its own buffered
    writes. At commit, a write to a key that another transaction
    committed after our snapshot aborts the commit (first committer
    wins), so the store is left untouched.

Used for tests and for dry runs that do not need a cluster.
"""

from __future__ import annotations

import bisect
import threading
from dataclasses import dataclass

from orphan_sweeper.ports.outbound.kv_store import (
    StoreError,
    TransactionClosedError,
    WriteConflictError,
)


@dataclass(frozen=True, slots=True)
class _Version:
    """One committed version of a key. ``value`` is None for a delete."""

    commit_ts: int
    value: bytes | None


class MemoryCursor:
    """Cursor over a range materialized from one snapshot."""

    def __init__(self, entries: list[tuple[bytes, bytes]]) -> None:
        self._entries = entries
        self._pos = 0
        self._closed = False

    def valid(self) -> bool:
        return not self._closed and self._pos < len(self._entries)

    def next(self) -> None:
        if self.valid():
            self._pos += 1

    def key(self) -> bytes:
        return self._current()[0]

    def value(self) -> bytes:
        return self._current()[1]

    def close(self) -> None:
        self._closed = True
        self._entries = []

    def _current(self) -> tuple[bytes, bytes]:
        if not self.valid():
            raise StoreError("cursor is not positioned on an entry")
        return self._entries[self._pos]


class MemoryTransaction:
    """A snapshot-isolated transaction against a MemoryKVStore."""

    def __init__(self, store: MemoryKVStore, snapshot_ts: int) -> None:
        self._store = store
        self._snapshot_ts = snapshot_ts
        self._writes: dict[bytes, bytes | None] = {}
        self._active = True

    @property
    def snapshot_ts(self) -> int:
        """Commit timestamp this transaction reads at."""
        return self._snapshot_ts

    def is_active(self) -> bool:
        return self._active

    def get(self, key: bytes) -> bytes | None:
        self._check_active()
        if key in self._writes:
            return self._writes[key]
        return self._store._read(key, self._snapshot_ts)

    def set(self, key: bytes, value: bytes) -> None:
        self._check_active()
        self._writes[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        self._check_active()
        self._writes[bytes(key)] = None

    def scan(self, lo: bytes, hi: bytes) -> MemoryCursor:
        self._check_active()
        merged = dict(self._store._range(lo, hi, self._snapshot_ts))
        for key, value in self._writes.items():
            if lo <= key < hi:
                if value is None:
                    merged.pop(key, None)
                else:
                    merged[key] = value
        return MemoryCursor(sorted(merged.items()))

    def commit(self) -> None:
        self._check_active()
        try:
            if self._writes:
                self._store._apply(self._writes, self._snapshot_ts)
        finally:
            self._active = False
            self._writes = {}

    def rollback(self) -> None:
        self._active = False
        self._writes = {}

    def _check_active(self) -> None:
        if not self._active:
            raise TransactionClosedError("transaction is no longer active")


class MemoryKVStore:
    """Multi-version in-memory implementation of the KVStore port.

    Thread Safety:
        All methods are thread-safe. Transactions themselves are meant
        for a single thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._versions: dict[bytes, list[_Version]] = {}
        self._keys: list[bytes] = []
        self._commit_ts = 0
        self._closed = False

        # Statistics
        self.committed_total = 0
        self.conflicts_total = 0

    def begin(self) -> MemoryTransaction:
        with self._lock:
            if self._closed:
                raise StoreError("store is closed")
            return MemoryTransaction(self, self._commit_ts)

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def items(self) -> list[tuple[bytes, bytes]]:
        """Return every live key/value pair at the latest commit."""
        with self._lock:
            entries = []
            for key in self._keys:
                value = self._visible(key, self._commit_ts)
                if value is not None:
                    entries.append((key, value))
            return entries

    def __len__(self) -> int:
        return len(self.items())

    def _read(self, key: bytes, snapshot_ts: int) -> bytes | None:
        with self._lock:
            return self._visible(key, snapshot_ts)

    def _range(self, lo: bytes, hi: bytes, snapshot_ts: int) -> list[tuple[bytes, bytes]]:
        with self._lock:
            start = bisect.bisect_left(self._keys, lo)
            end = bisect.bisect_left(self._keys, hi)
            entries = []
            for key in self._keys[start:end]:
                value = self._visible(key, snapshot_ts)
                if value is not None:
                    entries.append((key, value))
            return entries

    def _visible(self, key: bytes, snapshot_ts: int) -> bytes | None:
        for version in reversed(self._versions.get(key, ())):
            if version.commit_ts <= snapshot_ts:
                return version.value
        return None

    def _apply(self, writes: dict[bytes, bytes | None], snapshot_ts: int) -> None:
        with self._lock:
            if self._closed:
                raise StoreError("store is closed")

            for key in writes:
                versions = self._versions.get(key)
                if versions and versions[-1].commit_ts > snapshot_ts:
                    self.conflicts_total += 1
                    raise WriteConflictError(
                        f"write conflict on key {key.decode(errors='replace')}"
                    )

            commit_ts = self._commit_ts + 1
            for key, value in writes.items():
                versions = self._versions.get(key)
                if versions is None:
                    versions = self._versions[key] = []
                    bisect.insort(self._keys, key)
                versions.append(_Version(commit_ts, value))

            self._commit_ts = commit_ts
            self.committed_total += 1
