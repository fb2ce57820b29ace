"""Unit tests for MetaCursor."""

from __future__ import annotations

import pytest

from orphan_sweeper.adapters.outbound.memory_store import MemoryKVStore
from orphan_sweeper.domain.entities import ObjectInfo
from orphan_sweeper.domain.services.cursor import MetaCursor
from orphan_sweeper.ports.outbound.kv_store import StoreError


def _seed(store: MemoryKVStore) -> None:
    txn = store.begin()
    txn.set(b"OBJECT#b1#a", ObjectInfo(name="a", bucket="b1").encode())
    txn.set(b"OBJECT#b1#b", b"{broken")
    txn.set(b"OBJECT#b1#c", ObjectInfo(name="c", bucket="b1").encode())
    txn.commit()


@pytest.mark.unit
class TestMetaCursor:
    """Tests for MetaCursor."""

    def test_undecodable_value_yields_none(self, store: MemoryKVStore) -> None:
        """Test that a value that does not decode is returned as None."""
        _seed(store)

        with MetaCursor.open(store, b"OBJECT#b1#", b"OBJECT#b1$", ObjectInfo) as cursor:
            entries = list(cursor)

        assert [key for key, _ in entries] == [b"OBJECT#b1#a", b"OBJECT#b1#b", b"OBJECT#b1#c"]
        assert entries[1][1] is None
        assert entries[0][1].name == "a"
        assert cursor.decode_failures == 1

    def test_manual_iteration(self, store: MemoryKVStore) -> None:
        """Test the valid/next/key/value protocol."""
        _seed(store)
        cursor = MetaCursor.open(store, b"OBJECT#b1#", b"OBJECT#b1$", ObjectInfo)

        names = []
        while cursor.valid():
            obj = cursor.value()
            if obj is not None:
                names.append(obj.name)
            cursor.next()
        cursor.close()

        assert names == ["a", "c"]

    def test_close_is_idempotent(self, store: MemoryKVStore) -> None:
        """Test that closing twice is harmless."""
        _seed(store)
        cursor = MetaCursor.open(store, b"OBJECT#", b"OBJECT$", ObjectInfo)

        cursor.close()
        cursor.close()

        assert cursor.closed
        assert not cursor.valid()

    def test_closed_on_early_exit(self, store: MemoryKVStore) -> None:
        """Test that leaving the with block early closes the cursor."""
        _seed(store)

        with pytest.raises(RuntimeError):
            with MetaCursor.open(store, b"OBJECT#", b"OBJECT$", ObjectInfo) as cursor:
                raise RuntimeError("stop")

        assert cursor.closed

    def test_raw_value(self, store: MemoryKVStore) -> None:
        """Test reading the undecoded bytes of the current entry."""
        _seed(store)

        with MetaCursor.open(store, b"OBJECT#b1#b", b"OBJECT#b1#c", ObjectInfo) as cursor:
            assert cursor.raw_value() == b"{broken"

    def test_failed_scan_releases_transaction(self, faulty_store) -> None:
        """Test that a cursor that fails to open rolls back its transaction."""
        faulty_store.fail_scans = True

        with pytest.raises(StoreError):
            MetaCursor.open(faulty_store, b"a", b"z", ObjectInfo)

        assert faulty_store.rollbacks == 1
