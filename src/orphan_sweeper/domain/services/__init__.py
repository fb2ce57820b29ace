"""Domain services for metadata access and reconciliation.

Repositories own the encoding of their records and the soft-delete
protocol for their key prefix. The reconciliation engine depends on them
only through the inbound ports.
"""

from orphan_sweeper.domain.services.bucket_repository import BucketRepository
from orphan_sweeper.domain.services.cursor import MetaCursor
from orphan_sweeper.domain.services.meta_manager import MetaManager
from orphan_sweeper.domain.services.multipart_repository import MultipartRepository
from orphan_sweeper.domain.services.object_repository import ObjectRepository
from orphan_sweeper.domain.services.reconciliation import (
    OrphanFragment,
    ReconciliationCancelled,
    ReconciliationEngine,
    ReconciliationReport,
)

__all__ = [
    "MetaManager",
    "MetaCursor",
    "BucketRepository",
    "ObjectRepository",
    "MultipartRepository",
    "ReconciliationEngine",
    "ReconciliationReport",
    "ReconciliationCancelled",
    "OrphanFragment",
]
