"""Typed cursor over a range of metadata records."""

from __future__ import annotations

from typing import Generic, Iterator, TypeVar

from pydantic import ValidationError

from orphan_sweeper.domain.entities.common import Record
from orphan_sweeper.infrastructure.logging import get_logger
from orphan_sweeper.ports.outbound.kv_store import KVCursor, KVStore, KVTransaction

R = TypeVar("R", bound=Record)

logger = get_logger(__name__)


class MetaCursor(Generic[R]):
    """Forward-only cursor decoding each value as ``record_type``.

    The cursor owns a read-only transaction and the store cursor opened in
    it; close() releases both and runs at most once. A value that does not
    decode is returned as None so that one corrupt record never stops a scan.

    Usage:
        with MetaCursor.open(store, lo, hi, ObjectInfo) as cursor:
            for key, obj in cursor:
                if obj is None:
                    continue
                ...
    """

    def __init__(self, txn: KVTransaction, cursor: KVCursor, record_type: type[R]) -> None:
        self._txn = txn
        self._cursor = cursor
        self._record_type = record_type
        self._closed = False
        self.decode_failures = 0

    @classmethod
    def open(cls, store: KVStore, lo: bytes, hi: bytes, record_type: type[R]) -> MetaCursor[R]:
        """Begin a transaction and open a cursor over ``[lo, hi)`` in it."""
        txn = store.begin()
        try:
            cursor = txn.scan(lo, hi)
        except BaseException:
            txn.rollback()
            raise
        return cls(txn, cursor, record_type)

    @property
    def closed(self) -> bool:
        return self._closed

    def valid(self) -> bool:
        return not self._closed and self._cursor.valid()

    def next(self) -> None:
        if self.valid():
            self._cursor.next()

    def key(self) -> bytes:
        return self._cursor.key()

    def raw_value(self) -> bytes:
        return self._cursor.value()

    def value(self) -> R | None:
        raw = self._cursor.value()
        try:
            return self._record_type.decode(raw)
        except ValidationError as e:
            self.decode_failures += 1
            logger.warning(
                "record_decode_failed",
                key=self._cursor.key().decode(errors="replace"),
                record_type=self._record_type.__name__,
                errors=e.error_count(),
            )
            return None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        finally:
            self._txn.rollback()

    def __iter__(self) -> Iterator[tuple[bytes, R | None]]:
        while self.valid():
            yield self.key(), self.value()
            self.next()

    def __enter__(self) -> MetaCursor[R]:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
