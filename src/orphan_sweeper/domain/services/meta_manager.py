"""Transactional helpers shared by the metadata repositories.

Every write helper runs in its own transaction and commits before it
returns; reads use a short-lived read-only transaction. The soft-delete
helpers read the live value, copy it to a tombstone key and replace or
remove the live key inside one transaction, so either both writes land
or neither does.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, TypeVar

from pydantic import ValidationError

from orphan_sweeper.domain.entities.common import Record
from orphan_sweeper.domain.services.cursor import MetaCursor
from orphan_sweeper.domain.value_objects.keys import KeyCodec, upper_bound
from orphan_sweeper.infrastructure.logging import get_logger
from orphan_sweeper.ports.inbound import AlreadyExistsError, DecodeError, NotFoundError
from orphan_sweeper.ports.outbound.kv_store import KVStore, KVTransaction

R = TypeVar("R", bound=Record)

KV = tuple[bytes, bytes]


class MetaManager:
    """Base class owning the store handle and key codec."""

    def __init__(self, store: KVStore, codec: KeyCodec | None = None) -> None:
        """Initialize the manager.

        Args:
            store: Explicitly constructed store handle, shared by the caller.
            codec: Key codec (default namespace if not provided).
        """
        self._store = store
        self._codec = codec or KeyCodec()
        self._logger = get_logger(type(self).__name__)

    @property
    def codec(self) -> KeyCodec:
        return self._codec

    @property
    def store(self) -> KVStore:
        return self._store

    # -- transactions -------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[KVTransaction]:
        """Run a block in one transaction, committing if it completes."""
        txn = self._store.begin()
        try:
            yield txn
            txn.commit()
        except BaseException:
            txn.rollback()
            raise

    def get_raw(self, key: bytes) -> bytes | None:
        txn = self._store.begin()
        try:
            return txn.get(key)
        finally:
            txn.rollback()

    def set_raw(self, key: bytes, value: bytes) -> None:
        with self.transaction() as txn:
            txn.set(key, value)

    def delete_raw(self, *keys: bytes) -> None:
        """Hard-delete keys in one transaction."""
        with self.transaction() as txn:
            for key in keys:
                txn.delete(key)

    def set_if_absent(self, key: bytes, value: bytes) -> None:
        """Write ``key`` only if it does not exist yet.

        The check and the write happen in one optimistic transaction; a
        concurrent creator makes our commit fail instead of overwriting.

        Raises:
            AlreadyExistsError: If the key is present.
        """
        with self.transaction() as txn:
            if txn.get(key) is not None:
                raise AlreadyExistsError(key)
            txn.set(key, value)

    def save_with_tombstone(self, key: bytes, tombstone_key: bytes, value: bytes) -> bytes | None:
        """Overwrite ``key``, copying its previous value to ``tombstone_key``.

        Returns:
            The replaced value, or None if the key was new (no tombstone).
        """
        with self.transaction() as txn:
            previous = txn.get(key)
            if previous is not None:
                txn.set(tombstone_key, previous)
            txn.set(key, value)
        if previous is not None:
            self._logger.debug("tombstone_written", key=tombstone_key.decode(errors="replace"))
        return previous

    def move_to_tombstone(self, key: bytes, tombstone_key: bytes) -> bytes:
        """Copy the value of ``key`` to ``tombstone_key`` and delete ``key``.

        Returns:
            The tombstoned value.

        Raises:
            NotFoundError: If ``key`` does not exist.
        """
        with self.transaction() as txn:
            value = txn.get(key)
            if value is None:
                raise NotFoundError(key)
            txn.set(tombstone_key, value)
            txn.delete(key)
        self._logger.debug("tombstone_written", key=tombstone_key.decode(errors="replace"))
        return value

    # -- scans --------------------------------------------------------------

    def scan_raw(self, lo: bytes, hi: bytes, limit: int = -1) -> list[KV]:
        """Materialize ``[lo, hi)``; a negative limit means no limit."""
        entries: list[KV] = []
        if limit == 0:
            return entries
        txn = self._store.begin()
        try:
            cursor = txn.scan(lo, hi)
            try:
                while cursor.valid():
                    entries.append((cursor.key(), cursor.value()))
                    if 0 < limit <= len(entries):
                        break
                    cursor.next()
            finally:
                cursor.close()
        finally:
            txn.rollback()
        return entries

    def list_raw(self, prefix: bytes, limit: int = -1) -> list[KV]:
        """Materialize every key starting with ``prefix``."""
        return self.scan_raw(prefix, upper_bound(prefix), limit)

    def open_cursor(self, lo: bytes, hi: bytes, record_type: type[R]) -> MetaCursor[R]:
        """Open a streaming cursor over ``[lo, hi)``."""
        return MetaCursor.open(self._store, lo, hi, record_type)

    # -- decoding -----------------------------------------------------------

    @staticmethod
    def decode(record_type: type[R], key: bytes, raw: bytes) -> R:
        """Decode a stored value, raising DecodeError if it is malformed."""
        try:
            return record_type.decode(raw)
        except ValidationError as e:
            raise DecodeError(key, str(e)) from e

    def decode_all(self, record_type: type[R], entries: list[KV]) -> list[tuple[bytes, R]]:
        """Decode scanned entries; the first malformed value aborts the list."""
        return [(key, self.decode(record_type, key, raw)) for key, raw in entries]
