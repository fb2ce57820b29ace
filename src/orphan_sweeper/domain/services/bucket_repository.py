"""Bucket metadata repository."""

from __future__ import annotations

from orphan_sweeper.domain.entities.bucket import BucketInfo
from orphan_sweeper.domain.services.cursor import MetaCursor
from orphan_sweeper.domain.services.meta_manager import MetaManager


class BucketRepository(MetaManager):
    """Buckets stored under ``BUCKET#<name>``.

    Buckets are created once (create-if-absent) and removed with a hard
    delete. save() and mark_deleted() keep the previous record under
    ``DELETED_BUCKET#<ts>#<name>``.
    """

    def create(self, info: BucketInfo) -> None:
        """Create a bucket.

        Raises:
            AlreadyExistsError: If the bucket exists.
        """
        self.set_if_absent(self._codec.bucket_key(info.name), info.encode())

    def get(self, name: str) -> BucketInfo | None:
        key = self._codec.bucket_key(name)
        raw = self.get_raw(key)
        if raw is None:
            return None
        return self.decode(BucketInfo, key, raw)

    def delete(self, name: str) -> None:
        self.delete_raw(self._codec.bucket_key(name))

    def save(self, info: BucketInfo) -> None:
        self.save_with_tombstone(
            self._codec.bucket_key(info.name),
            self._codec.deleted_bucket_key(info.name),
            info.encode(),
        )

    def mark_deleted(self, name: str) -> None:
        """Tombstone and remove a bucket.

        Raises:
            NotFoundError: If the bucket does not exist.
        """
        self.move_to_tombstone(self._codec.bucket_key(name), self._codec.deleted_bucket_key(name))

    def list(self, limit: int = -1) -> list[BucketInfo]:
        """List buckets in name order.

        Raises:
            DecodeError: If any stored bucket is malformed.
        """
        entries = self.list_raw(self._codec.bucket_prefix(), limit)
        return [info for _, info in self.decode_all(BucketInfo, entries)]

    def list_by_type(self, bucket_type: str) -> list[BucketInfo]:
        return [info for info in self.list() if info.type == bucket_type]

    def iterate(self) -> MetaCursor[BucketInfo]:
        lo, hi = self._codec.bucket_range()
        return self.open_cursor(lo, hi, BucketInfo)
