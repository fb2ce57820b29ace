"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts:
- Inbound ports: repositories offered to callers (buckets, objects, multiparts)
- Outbound ports: dependencies on external systems (the transactional KV store)

Adapters implement these ports with concrete functionality.
"""

from orphan_sweeper.ports.inbound import (
    AlreadyExistsError,
    BucketRepositoryPort,
    DecodeError,
    MetadataError,
    MultipartRepositoryPort,
    NotFoundError,
    ObjectRepositoryPort,
    RecordCursor,
)
from orphan_sweeper.ports.outbound import (
    KVCursor,
    KVStore,
    KVTransaction,
    StoreError,
    TransactionClosedError,
    WriteConflictError,
)

__all__ = [
    # Inbound ports
    "AlreadyExistsError",
    "BucketRepositoryPort",
    "DecodeError",
    "MetadataError",
    "MultipartRepositoryPort",
    "NotFoundError",
    "ObjectRepositoryPort",
    "RecordCursor",
    # Outbound ports
    "KVCursor",
    "KVStore",
    "KVTransaction",
    "StoreError",
    "TransactionClosedError",
    "WriteConflictError",
]
