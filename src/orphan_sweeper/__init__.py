"""
Orphan Sweeper - Multipart Garbage Reconciliation

A mark-and-sweep reconciler for the metadata layer of an object store.
Walks buckets, live objects and tombstones in a transactional key-value
store and reports multipart fragment records that nothing references.
"""

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"
