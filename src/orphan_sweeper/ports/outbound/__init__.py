"""Outbound ports - interfaces for external dependencies.

Outbound ports define contracts for external systems that the sweeper
depends on: the transactional key-value metadata store.
"""

from orphan_sweeper.ports.outbound.kv_store import (
    KVCursor,
    KVStore,
    KVTransaction,
    StoreError,
    TransactionClosedError,
    WriteConflictError,
)

__all__ = [
    "KVStore",
    "KVTransaction",
    "KVCursor",
    "StoreError",
    "WriteConflictError",
    "TransactionClosedError",
]
