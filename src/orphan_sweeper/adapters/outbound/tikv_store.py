"""TiKV adapter for the KVStore port.

Uses the transactional API of the ``tikv-client`` package (installed
with the ``tikv`` extra). Transactions are optimistic: conflicts surface
from commit(). Range cursors page through the snapshot in batches of
``batch_size`` keys so that a scan over millions of records never holds
more than one batch in memory.
"""

from __future__ import annotations

from typing import Any

from orphan_sweeper.ports.outbound.kv_store import StoreError, TransactionClosedError


def parse_addresses(addresses: str | list[str]) -> list[str]:
    """Split a comma-separated endpoint list, dropping blanks.

    Raises:
        StoreError: If no address remains.
    """
    if isinstance(addresses, str):
        addresses = addresses.split(",")
    parsed = [addr.strip() for addr in addresses if addr.strip()]
    if not parsed:
        raise StoreError("invalid address")
    return parsed


class TiKVCursor:
    """Batched forward cursor over ``[lo, hi)`` inside one transaction."""

    def __init__(self, txn: Any, lo: bytes, hi: bytes, batch_size: int) -> None:
        self._txn = txn
        self._hi = hi
        self._batch_size = batch_size
        self._batch: list[tuple[bytes, bytes]] = []
        self._pos = 0
        self._exhausted = False
        self._closed = False
        self._fetch(lo, include_start=True)

    def valid(self) -> bool:
        return not self._closed and self._pos < len(self._batch)

    def next(self) -> None:
        if not self.valid():
            return
        self._pos += 1
        if self._pos == len(self._batch) and not self._exhausted:
            self._fetch(self._batch[-1][0], include_start=False)

    def key(self) -> bytes:
        return self._current()[0]

    def value(self) -> bytes:
        return self._current()[1]

    def close(self) -> None:
        self._closed = True
        self._batch = []

    def _current(self) -> tuple[bytes, bytes]:
        if not self.valid():
            raise StoreError("cursor is not positioned on an entry")
        return self._batch[self._pos]

    def _fetch(self, start: bytes, include_start: bool) -> None:
        try:
            batch = self._txn.scan(
                start,
                self._hi,
                self._batch_size,
                include_start=include_start,
                include_end=False,
            )
        except Exception as e:
            raise StoreError(f"scan failed: {e}") from e
        self._batch = [(bytes(k), bytes(v)) for k, v in batch]
        self._pos = 0
        self._exhausted = len(self._batch) < self._batch_size


class TiKVTransaction:
    """Wraps a ``tikv_client`` transaction."""

    def __init__(self, txn: Any, batch_size: int) -> None:
        self._txn = txn
        self._batch_size = batch_size
        self._active = True

    def get(self, key: bytes) -> bytes | None:
        self._check_active()
        try:
            value = self._txn.get(key)
        except Exception as e:
            raise StoreError(f"get failed: {e}") from e
        return None if value is None else bytes(value)

    def set(self, key: bytes, value: bytes) -> None:
        self._check_active()
        try:
            self._txn.put(key, value)
        except Exception as e:
            raise StoreError(f"set failed: {e}") from e

    def delete(self, key: bytes) -> None:
        self._check_active()
        try:
            self._txn.delete(key)
        except Exception as e:
            raise StoreError(f"delete failed: {e}") from e

    def scan(self, lo: bytes, hi: bytes) -> TiKVCursor:
        self._check_active()
        return TiKVCursor(self._txn, lo, hi, self._batch_size)

    def commit(self) -> None:
        self._check_active()
        self._active = False
        try:
            self._txn.commit()
        except Exception as e:
            raise StoreError(f"commit failed: {e}") from e

    def rollback(self) -> None:
        # An optimistic transaction that never commits leaves no trace.
        self._active = False

    def _check_active(self) -> None:
        if not self._active:
            raise TransactionClosedError("transaction is no longer active")


class TiKVStore:
    """KVStore backed by a TiKV cluster reached through its PD endpoints."""

    def __init__(self, addresses: str | list[str], batch_size: int = 256) -> None:
        """Connect to the cluster.

        Args:
            addresses: PD endpoints, as a list or a comma-separated string.
            batch_size: Keys fetched per round-trip by range cursors.

        Raises:
            StoreError: If the address list is empty or connecting fails.
        """
        self._addresses = parse_addresses(addresses)
        self._batch_size = batch_size

        from tikv_client import TransactionClient

        try:
            self._client = TransactionClient.connect(self._addresses)
        except Exception as e:
            raise StoreError(f"cannot connect to {self._addresses}: {e}") from e

    @property
    def addresses(self) -> list[str]:
        return list(self._addresses)

    def begin(self) -> TiKVTransaction:
        if self._client is None:
            raise StoreError("store is closed")
        try:
            txn = self._client.begin(pessimistic=False)
        except Exception as e:
            raise StoreError(f"begin failed: {e}") from e
        return TiKVTransaction(txn, self._batch_size)

    def close(self) -> None:
        self._client = None
