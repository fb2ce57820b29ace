"""Outbound adapters - KV store implementations.

Available adapters:
- MemoryKVStore: In-process MVCC store (tests, dry runs)
- TiKVStore: TiKV cluster via its PD endpoints (requires the ``tikv`` extra)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from orphan_sweeper.adapters.outbound.memory_store import (
    MemoryCursor,
    MemoryKVStore,
    MemoryTransaction,
)
from orphan_sweeper.adapters.outbound.tikv_store import TiKVStore, parse_addresses
from orphan_sweeper.ports.outbound.kv_store import KVStore

if TYPE_CHECKING:
    from orphan_sweeper.infrastructure.config import MetadataConfig


def create_store(config: MetadataConfig) -> KVStore:
    """Build the store handle selected by the metadata configuration.

    Raises:
        StoreError: If the TiKV backend has no usable address.
        ValueError: If the backend is unknown.
    """
    if config.backend == "memory":
        return MemoryKVStore()
    if config.backend == "tikv":
        return TiKVStore(config.addresses, batch_size=config.scan_batch_size)
    raise ValueError(f"unknown metadata backend: {config.backend}")


__all__ = [
    "MemoryKVStore",
    "MemoryTransaction",
    "MemoryCursor",
    "TiKVStore",
    "parse_addresses",
    "create_store",
]
