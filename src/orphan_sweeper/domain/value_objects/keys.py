"""Key codec for the flat, ordered metadata namespace.

Every entity kind lives in the same sorted key-value space and is told
apart by its key prefix:

    BUCKET#<name>
    DELETED_BUCKET#<ts>#<name>
    OBJECT#<bucket>#<name>
    DELETED_OBJECT#<ts>#<bucket>#<name>
    MULTIPART#<bucket>#<uploadID>#<index:05d>
    DELETED_MULTIPART#<ts>#<bucket>#<uploadID>#<index:05d>

Tombstone timestamps are nanoseconds since the epoch, zero-padded to 19
digits so that lexical order equals deletion order.

A prefix scan over ``P`` covers ``[P, upper_bound(P))``. Each prefix used
for scanning ends with the separator, so incrementing its last byte
(``#`` -> ``$``) can never reach a key of another bucket or entity kind.
That only holds while bucket names never contain the separator themselves:
bucket ``a#b`` would sort inside the range of bucket ``a``. The codec
refuses such names.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import NamedTuple

KEY_SEPARATOR = "#"

BUCKET_PREFIX = "BUCKET"
DELETED_BUCKET_PREFIX = "DELETED_BUCKET"
OBJECT_PREFIX = "OBJECT"
DELETED_OBJECT_PREFIX = "DELETED_OBJECT"
MULTIPART_PREFIX = "MULTIPART"
DELETED_MULTIPART_PREFIX = "DELETED_MULTIPART"

FRAGMENT_INDEX_WIDTH = 5
TIMESTAMP_WIDTH = 19

KeyLike = bytes | str


def _text(key: KeyLike) -> str:
    if isinstance(key, bytes):
        return key.decode("utf-8", errors="replace")
    return key


def upper_bound(prefix: bytes, offset: int = 1) -> bytes:
    """Return the exclusive upper bound for a scan over ``prefix``.

    Args:
        prefix: Non-empty key prefix.
        offset: Amount added to the last byte (1 for a plain prefix scan).

    Returns:
        ``prefix`` with its last byte incremented by ``offset``.

    Raises:
        ValueError: If the prefix is empty or the increment overflows a byte.
    """
    if not prefix:
        raise ValueError("cannot compute the upper bound of an empty prefix")
    last = prefix[-1] + offset
    if last > 0xFF:
        raise ValueError(f"upper bound of {prefix!r} overflows the last byte")
    return prefix[:-1] + bytes([last])


def validate_bucket_name(name: str) -> str:
    """Return ``name`` unchanged, or raise if it cannot be used in a key.

    Raises:
        ValueError: If the name contains the key separator.
    """
    if KEY_SEPARATOR in name:
        raise ValueError(f"bucket name {name!r} must not contain {KEY_SEPARATOR!r}")
    return name


def fragment_name(upload_id: str, index: int) -> str:
    """Name of fragment ``index`` of an upload: ``<uploadID>#<index:05d>``."""
    if index < 0:
        raise ValueError(f"fragment index must be non-negative, got {index}")
    return f"{upload_id}{KEY_SEPARATOR}{index:0{FRAGMENT_INDEX_WIDTH}d}"


class FragmentName(NamedTuple):
    upload_id: str
    index: int


def parse_fragment_name(name: str) -> FragmentName | None:
    """Split a fragment name into upload id and index, or None if malformed.

    The index must be written the way fragment_name writes it: zero-padded
    to five digits, wider from 100000 on.
    """
    upload_id, sep, index = name.rpartition(KEY_SEPARATOR)
    if not sep or not upload_id or not (index.isascii() and index.isdigit()):
        return None
    if f"{int(index):0{FRAGMENT_INDEX_WIDTH}d}" != index:
        return None
    return FragmentName(upload_id, int(index))


class BucketKey(NamedTuple):
    name: str


class ObjectKey(NamedTuple):
    bucket: str
    name: str


class DeletedObjectKey(NamedTuple):
    timestamp: int
    bucket: str
    name: str


class MultipartKey(NamedTuple):
    bucket: str
    name: str


class DeletedMultipartKey(NamedTuple):
    timestamp: int
    bucket: str
    name: str


class TombstoneClock:
    """Strictly increasing nanosecond timestamps for tombstone keys.

    Wall-clock nanoseconds can repeat or step backwards; the clock never
    hands out a value that is not greater than the previous one.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last = 0

    def now(self) -> int:
        with self._lock:
            self._last = max(time.time_ns(), self._last + 1)
            return self._last


@dataclass(frozen=True)
class KeyCodec:
    """Encodes and decodes metadata keys.

    Attributes:
        namespace: String prepended to every entity prefix. Deployments
            sharing a cluster with other services use it to stay apart
            (for example ``"YDS3_"``).
        clock: Timestamp source for tombstone keys.
    """

    namespace: str = ""
    clock: TombstoneClock = field(default_factory=TombstoneClock, compare=False, repr=False)

    # -- prefixes -----------------------------------------------------------

    def _prefix(self, kind: str) -> str:
        return f"{self.namespace}{kind}{KEY_SEPARATOR}"

    def _bucket_prefix(self, kind: str, bucket: str) -> str:
        return f"{self._prefix(kind)}{validate_bucket_name(bucket)}{KEY_SEPARATOR}"

    def bucket_prefix(self) -> bytes:
        return self._prefix(BUCKET_PREFIX).encode()

    def deleted_bucket_prefix(self) -> bytes:
        return self._prefix(DELETED_BUCKET_PREFIX).encode()

    def bucket_objects_prefix(self, bucket: str) -> bytes:
        """Prefix shared by every live object key of ``bucket``."""
        return self._bucket_prefix(OBJECT_PREFIX, bucket).encode()

    def deleted_objects_prefix(self, start: str = "") -> bytes:
        """Prefix of tombstoned objects, optionally narrowed by ``start``."""
        return f"{self._prefix(DELETED_OBJECT_PREFIX)}{start}".encode()

    def multipart_prefix(self) -> bytes:
        return self._prefix(MULTIPART_PREFIX).encode()

    def upload_parts_prefix(self, bucket: str, upload_id: str) -> bytes:
        """Prefix shared by every fragment key of one upload."""
        return f"{self._bucket_prefix(MULTIPART_PREFIX, bucket)}{upload_id}{KEY_SEPARATOR}".encode()

    def deleted_multipart_prefix(self) -> bytes:
        return self._prefix(DELETED_MULTIPART_PREFIX).encode()

    # -- ranges -------------------------------------------------------------

    def bucket_range(self) -> tuple[bytes, bytes]:
        prefix = self.bucket_prefix()
        return prefix, upper_bound(prefix)

    def object_range(self, bucket: str) -> tuple[bytes, bytes]:
        """Key range holding exactly the live objects of ``bucket``."""
        prefix = self.bucket_objects_prefix(bucket)
        return prefix, upper_bound(prefix)

    def deleted_object_range(self) -> tuple[bytes, bytes]:
        """Key range holding every tombstoned object, across all buckets."""
        prefix = self.deleted_objects_prefix()
        return prefix, upper_bound(prefix)

    def multipart_range(self) -> tuple[bytes, bytes]:
        prefix = self.multipart_prefix()
        return prefix, upper_bound(prefix)

    def deleted_multipart_range(self) -> tuple[bytes, bytes]:
        prefix = self.deleted_multipart_prefix()
        return prefix, upper_bound(prefix)

    # -- encoders -----------------------------------------------------------

    def bucket_key(self, name: str) -> bytes:
        return f"{self._prefix(BUCKET_PREFIX)}{validate_bucket_name(name)}".encode()

    def deleted_bucket_key(self, name: str, timestamp: int | None = None) -> bytes:
        ts = self._timestamp(timestamp)
        name = validate_bucket_name(name)
        return f"{self._prefix(DELETED_BUCKET_PREFIX)}{ts}{KEY_SEPARATOR}{name}".encode()

    def object_key(self, bucket: str, name: str) -> bytes:
        return f"{self._bucket_prefix(OBJECT_PREFIX, bucket)}{name}".encode()

    def deleted_object_key(self, bucket: str, name: str, timestamp: int | None = None) -> bytes:
        ts = self._timestamp(timestamp)
        return (
            f"{self._prefix(DELETED_OBJECT_PREFIX)}{ts}{KEY_SEPARATOR}"
            f"{validate_bucket_name(bucket)}{KEY_SEPARATOR}{name}"
        ).encode()

    def multipart_key(self, bucket: str, name: str) -> bytes:
        return f"{self._bucket_prefix(MULTIPART_PREFIX, bucket)}{name}".encode()

    def fragment_key(self, bucket: str, upload_id: str, index: int) -> bytes:
        return self.multipart_key(bucket, fragment_name(upload_id, index))

    def deleted_multipart_key(self, bucket: str, name: str, timestamp: int | None = None) -> bytes:
        ts = self._timestamp(timestamp)
        return (
            f"{self._prefix(DELETED_MULTIPART_PREFIX)}{ts}{KEY_SEPARATOR}"
            f"{validate_bucket_name(bucket)}{KEY_SEPARATOR}{name}"
        ).encode()

    def _timestamp(self, timestamp: int | None) -> str:
        if timestamp is None:
            timestamp = self.clock.now()
        if timestamp < 0:
            raise ValueError(f"timestamp must be non-negative, got {timestamp}")
        return f"{timestamp:0{TIMESTAMP_WIDTH}d}"

    # -- decoders -----------------------------------------------------------
    #
    # Each parser returns None for a key of another kind or one with too
    # few components. Names keep any separators they contain.

    def _split(self, key: KeyLike, kind: str, parts: int) -> list[str] | None:
        text = _text(key)
        prefix = self._prefix(kind)
        if not text.startswith(prefix):
            return None
        segments = text[len(prefix):].split(KEY_SEPARATOR, parts - 1)
        if len(segments) < parts or not all(segments[:-1]):
            return None
        return segments

    @staticmethod
    def _parse_timestamp(raw: str) -> int | None:
        if not raw.isdigit():
            return None
        return int(raw)

    def parse_bucket_key(self, key: KeyLike) -> BucketKey | None:
        segments = self._split(key, BUCKET_PREFIX, 1)
        if segments is None or not segments[0] or KEY_SEPARATOR in segments[0]:
            return None
        return BucketKey(segments[0])

    def parse_object_key(self, key: KeyLike) -> ObjectKey | None:
        segments = self._split(key, OBJECT_PREFIX, 2)
        if segments is None:
            return None
        return ObjectKey(segments[0], segments[1])

    def parse_deleted_object_key(self, key: KeyLike) -> DeletedObjectKey | None:
        segments = self._split(key, DELETED_OBJECT_PREFIX, 3)
        if segments is None:
            return None
        ts = self._parse_timestamp(segments[0])
        if ts is None:
            return None
        return DeletedObjectKey(ts, segments[1], segments[2])

    def parse_multipart_key(self, key: KeyLike) -> MultipartKey | None:
        segments = self._split(key, MULTIPART_PREFIX, 2)
        if segments is None:
            return None
        return MultipartKey(segments[0], segments[1])

    def parse_deleted_multipart_key(self, key: KeyLike) -> DeletedMultipartKey | None:
        segments = self._split(key, DELETED_MULTIPART_PREFIX, 3)
        if segments is None:
            return None
        ts = self._parse_timestamp(segments[0])
        if ts is None:
            return None
        return DeletedMultipartKey(ts, segments[1], segments[2])

    def object_name(self, bucket: str, key: KeyLike) -> str:
        """Strip the bucket prefix from a live object key.

        Returns an empty string when ``key`` does not belong to ``bucket``.
        """
        text = _text(key)
        prefix = self.bucket_objects_prefix(bucket).decode()
        if not text.startswith(prefix):
            return ""
        return text[len(prefix):]
