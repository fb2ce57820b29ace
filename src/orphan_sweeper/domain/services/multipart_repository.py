"""Multipart metadata repository.

Two record kinds share the ``MULTIPART#<bucket>#`` prefix:

    MULTIPART#<bucket>#<uploadID>          upload record (MultipartUpload)
    MULTIPART#<bucket>#<uploadID>#<index>  fragment record (MultipartPart)

Soft-deleted records move to ``DELETED_MULTIPART#<ts>#<bucket>#<name>``,
outside the live multipart range.
"""

from __future__ import annotations

from orphan_sweeper.domain.entities.multipart import MultipartPart, MultipartUpload
from orphan_sweeper.domain.services.cursor import MetaCursor
from orphan_sweeper.domain.services.meta_manager import MetaManager
from orphan_sweeper.domain.value_objects.keys import fragment_name, upper_bound

# Default page size of list_parts.
MAX_PARTS_LISTED = 10000


class MultipartRepository(MetaManager):
    """Fragment and upload records of multipart uploads."""

    # -- fragments ----------------------------------------------------------

    def create(self, bucket: str, upload_id: str, index: int, part: MultipartPart) -> None:
        """Store fragment ``index`` of an upload.

        Raises:
            AlreadyExistsError: If the fragment is already recorded.
        """
        self.set_if_absent(self._codec.fragment_key(bucket, upload_id, index), part.encode())

    def get(self, bucket: str, name: str) -> MultipartPart | None:
        """Get a fragment by its name (``<uploadID>#<index>``)."""
        key = self._codec.multipart_key(bucket, name)
        raw = self.get_raw(key)
        if raw is None:
            return None
        return self.decode(MultipartPart, key, raw)

    def get_part(self, bucket: str, upload_id: str, index: int) -> MultipartPart | None:
        return self.get(bucket, fragment_name(upload_id, index))

    def save(self, bucket: str, name: str, part: MultipartPart) -> None:
        """Write a fragment; a replaced record becomes a tombstone."""
        self.save_with_tombstone(
            self._codec.multipart_key(bucket, name),
            self._codec.deleted_multipart_key(bucket, name),
            part.encode(),
        )

    def delete(self, bucket: str, name: str) -> None:
        self.delete_raw(self._codec.multipart_key(bucket, name))

    def mark_deleted(self, bucket: str, name: str) -> None:
        """Tombstone and remove a multipart record.

        Raises:
            NotFoundError: If the record does not exist.
        """
        self.move_to_tombstone(
            self._codec.multipart_key(bucket, name),
            self._codec.deleted_multipart_key(bucket, name),
        )

    def list_parts(
        self,
        bucket: str,
        upload_id: str,
        after: int = -1,
        limit: int = MAX_PARTS_LISTED,
    ) -> list[tuple[int, MultipartPart]]:
        """List the fragments of one upload with an index greater than ``after``.

        Returns:
            ``(index, part)`` pairs in index order.

        Raises:
            DecodeError: If a listed fragment is malformed.
        """
        prefix = self._codec.upload_parts_prefix(bucket, upload_id)
        lo = self._codec.fragment_key(bucket, upload_id, max(after + 1, 0))
        entries = self.scan_raw(lo, upper_bound(prefix), limit)

        parts: list[tuple[int, MultipartPart]] = []
        for key, part in self.decode_all(MultipartPart, entries):
            index = key[len(prefix):].decode()
            if index.isdigit():
                parts.append((int(index), part))
        return parts

    # -- uploads ------------------------------------------------------------

    def create_upload(self, upload_id: str, upload: MultipartUpload) -> None:
        """Record an initiated upload.

        Raises:
            AlreadyExistsError: If the upload is already recorded.
        """
        self.set_if_absent(self._codec.multipart_key(upload.bucket, upload_id), upload.encode())

    def get_upload(self, bucket: str, upload_id: str) -> MultipartUpload | None:
        key = self._codec.multipart_key(bucket, upload_id)
        raw = self.get_raw(key)
        if raw is None:
            return None
        return self.decode(MultipartUpload, key, raw)

    # -- cursors ------------------------------------------------------------

    def iterate(self) -> MetaCursor[MultipartPart]:
        """Stream every live multipart record of every bucket."""
        lo, hi = self._codec.multipart_range()
        return self.open_cursor(lo, hi, MultipartPart)

    def iterate_deleted(self) -> MetaCursor[MultipartPart]:
        lo, hi = self._codec.deleted_multipart_range()
        return self.open_cursor(lo, hi, MultipartPart)
