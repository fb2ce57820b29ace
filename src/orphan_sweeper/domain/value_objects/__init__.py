"""Value objects for the metadata key space.

Exports:
    Key codec:
        - KeyCodec: Encodes/decodes every entity key, computes scan ranges
        - TombstoneClock: Strictly increasing nanosecond timestamps
        - upper_bound: Exclusive upper bound of a prefix scan
        - fragment_name / parse_fragment_name: ``<uploadID>#<index:05d>``
        - validate_bucket_name: Rejects bucket names holding the separator

    Parsed keys:
        - BucketKey, ObjectKey, DeletedObjectKey, MultipartKey,
          DeletedMultipartKey, FragmentName
"""

from orphan_sweeper.domain.value_objects.keys import (
    KEY_SEPARATOR,
    BucketKey,
    DeletedMultipartKey,
    DeletedObjectKey,
    FragmentName,
    KeyCodec,
    MultipartKey,
    ObjectKey,
    TombstoneClock,
    fragment_name,
    parse_fragment_name,
    upper_bound,
    validate_bucket_name,
)

__all__ = [
    "KEY_SEPARATOR",
    "KeyCodec",
    "TombstoneClock",
    "upper_bound",
    "fragment_name",
    "parse_fragment_name",
    "validate_bucket_name",
    # Parsed keys
    "BucketKey",
    "ObjectKey",
    "DeletedObjectKey",
    "MultipartKey",
    "DeletedMultipartKey",
    "FragmentName",
]
