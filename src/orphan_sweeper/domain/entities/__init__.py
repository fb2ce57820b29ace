"""Domain entities."""

from orphan_sweeper.domain.entities.bucket import BucketInfo
from orphan_sweeper.domain.entities.common import ZERO_TIME, ExtFields, FragmentLocation, Record
from orphan_sweeper.domain.entities.multipart import MultipartPart, MultipartUpload
from orphan_sweeper.domain.entities.object import OBJECT_LARGE_TYPE, ObjectInfo

__all__ = [
    "Record",
    "ZERO_TIME",
    "ExtFields",
    "FragmentLocation",
    "BucketInfo",
    "ObjectInfo",
    "OBJECT_LARGE_TYPE",
    "MultipartPart",
    "MultipartUpload",
]
