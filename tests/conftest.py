"""Pytest configuration and fixtures for orphan_sweeper tests."""

from __future__ import annotations

from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from orphan_sweeper.adapters.outbound.memory_store import MemoryKVStore, MemoryTransaction
from orphan_sweeper.domain.services.bucket_repository import BucketRepository
from orphan_sweeper.domain.services.multipart_repository import MultipartRepository
from orphan_sweeper.domain.services.object_repository import ObjectRepository
from orphan_sweeper.domain.value_objects.keys import KeyCodec
from orphan_sweeper.infrastructure.metrics import MetricsRegistry
from orphan_sweeper.ports.outbound.kv_store import StoreError


class FaultyTransaction:
    """Transaction proxy that fails selected operations."""

    def __init__(self, txn: MemoryTransaction, store: FaultyStore) -> None:
        self._txn = txn
        self._store = store

    def get(self, key: bytes) -> bytes | None:
        return self._txn.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        self._txn.set(key, value)

    def delete(self, key: bytes) -> None:
        self._txn.delete(key)

    def scan(self, lo: bytes, hi: bytes):
        if self._store.fail_scans:
            raise StoreError("injected scan failure")
        return self._txn.scan(lo, hi)

    def commit(self) -> None:
        if self._store.fail_commits:
            self._txn.rollback()
            raise StoreError("injected commit failure")
        self._txn.commit()

    def rollback(self) -> None:
        self._store.rollbacks += 1
        self._txn.rollback()


class FaultyStore:
    """MemoryKVStore wrapper whose commits or scans can be made to fail."""

    def __init__(self, inner: MemoryKVStore) -> None:
        self.inner = inner
        self.fail_commits = False
        self.fail_scans = False
        self.rollbacks = 0

    def begin(self) -> FaultyTransaction:
        return FaultyTransaction(self.inner.begin(), self)

    def close(self) -> None:
        self.inner.close()


@pytest.fixture
def store() -> Generator[MemoryKVStore, None, None]:
    """Provide an empty in-memory store."""
    s = MemoryKVStore()
    yield s
    s.close()


@pytest.fixture
def faulty_store(store: MemoryKVStore) -> FaultyStore:
    """Provide a store whose commits and scans can be made to fail."""
    return FaultyStore(store)


@pytest.fixture
def codec() -> KeyCodec:
    """Provide a key codec with the default namespace."""
    return KeyCodec()


@pytest.fixture
def buckets(store: MemoryKVStore, codec: KeyCodec) -> BucketRepository:
    return BucketRepository(store, codec)


@pytest.fixture
def objects(store: MemoryKVStore, codec: KeyCodec) -> ObjectRepository:
    return ObjectRepository(store, codec)


@pytest.fixture
def multiparts(store: MemoryKVStore, codec: KeyCodec) -> MultipartRepository:
    return MultipartRepository(store, codec)


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "property: Property-based tests")
