"""Object metadata repository."""

from __future__ import annotations

from orphan_sweeper.domain.entities.object import ObjectInfo
from orphan_sweeper.domain.services.cursor import MetaCursor
from orphan_sweeper.domain.services.meta_manager import MetaManager
from orphan_sweeper.domain.value_objects.keys import upper_bound


class ObjectRepository(MetaManager):
    """Live objects under ``OBJECT#<bucket>#<name>``, tombstones under
    ``DELETED_OBJECT#<ts>#<bucket>#<name>``.

    Every overwrite (save) and soft delete (mark_deleted) copies the prior
    record to a fresh tombstone in the same transaction that changes the
    live key. Tombstones keep the fragments of deleted objects reachable
    until they are purged with delete_by_deleted_key().
    """

    def create(self, info: ObjectInfo) -> None:
        """Create an object that must not exist yet.

        Raises:
            AlreadyExistsError: If the object exists.
        """
        self.set_if_absent(self._codec.object_key(info.bucket, info.name), info.encode())

    def get(self, bucket: str, name: str) -> ObjectInfo | None:
        key = self._codec.object_key(bucket, name)
        raw = self.get_raw(key)
        if raw is None:
            return None
        return self.decode(ObjectInfo, key, raw)

    def save(self, info: ObjectInfo) -> None:
        """Write an object; the version it replaces becomes a tombstone."""
        self.save_with_tombstone(
            self._codec.object_key(info.bucket, info.name),
            self._codec.deleted_object_key(info.bucket, info.name),
            info.encode(),
        )

    def delete(self, bucket: str, name: str) -> None:
        """Hard-delete a live object without leaving a tombstone."""
        self.delete_raw(self._codec.object_key(bucket, name))

    def mark_deleted(self, bucket: str, name: str) -> None:
        """Tombstone and remove a live object.

        Raises:
            NotFoundError: If the object does not exist.
        """
        self.move_to_tombstone(
            self._codec.object_key(bucket, name),
            self._codec.deleted_object_key(bucket, name),
        )

    def mark_deleted_with_value(self, info: ObjectInfo) -> bytes:
        """Write a tombstone holding ``info``; the live key is untouched.

        Returns:
            The tombstone key.
        """
        key = self._codec.deleted_object_key(info.bucket, info.name)
        self.set_raw(key, info.encode())
        return key

    def delete_by_deleted_key(self, key: bytes) -> None:
        """Purge one tombstone."""
        self.delete_raw(key)

    def list(self, bucket: str, prefix: str = "", limit: int = -1) -> list[tuple[bytes, ObjectInfo]]:
        """List live objects of ``bucket`` whose name starts with ``prefix``.

        Raises:
            DecodeError: If any listed record is malformed.
        """
        key_prefix = self._codec.object_key(bucket, prefix)
        if prefix:
            entries = self.list_raw(key_prefix, limit)
        else:
            entries = self.scan_raw(*self._codec.object_range(bucket), limit=limit)
        return self.decode_all(ObjectInfo, entries)

    def list_deleted(self, start: str = "", limit: int = -1) -> list[tuple[bytes, ObjectInfo]]:
        """List tombstones whose key (after the prefix) starts with ``start``."""
        entries = self.list_raw(self._codec.deleted_objects_prefix(start), limit)
        return self.decode_all(ObjectInfo, entries)

    def scan(self, lo: bytes, hi: bytes, limit: int = -1) -> list[tuple[bytes, ObjectInfo]]:
        return self.decode_all(ObjectInfo, self.scan_raw(lo, hi, limit))

    def object_range(self, bucket: str) -> tuple[bytes, bytes]:
        return self._codec.object_range(bucket)

    def deleted_range(self) -> tuple[bytes, bytes]:
        return self._codec.deleted_object_range()

    def object_name(self, bucket: str, key: bytes | str) -> str:
        """Object name encoded in a live key of ``bucket``."""
        return self._codec.object_name(bucket, key)

    def iterate_bucket(self, bucket: str) -> MetaCursor[ObjectInfo]:
        lo, hi = self._codec.object_range(bucket)
        return self.open_cursor(lo, hi, ObjectInfo)

    def iterate_deleted(self, start: str = "") -> MetaCursor[ObjectInfo]:
        """Stream tombstones of every bucket, oldest first."""
        prefix = self._codec.deleted_objects_prefix(start)
        return self.open_cursor(prefix, upper_bound(prefix), ObjectInfo)
