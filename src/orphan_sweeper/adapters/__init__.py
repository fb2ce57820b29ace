"""Adapters layer - concrete implementations of ports.

Outbound adapters implement the KV store port against real backends.
"""

from orphan_sweeper.adapters.outbound import MemoryKVStore, TiKVStore, create_store

__all__ = [
    "MemoryKVStore",
    "TiKVStore",
    "create_store",
]
