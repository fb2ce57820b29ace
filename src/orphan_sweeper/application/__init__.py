"""Application layer for the orphan sweeper.

Exports:
    GarbageCollectionJob: Runs one reconciliation pass from a container
"""

from orphan_sweeper.application.gc_job import GarbageCollectionJob

__all__ = [
    "GarbageCollectionJob",
]
