"""Object record for object storage."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from orphan_sweeper.domain.entities.common import ZERO_TIME, ExtFields, Record
from orphan_sweeper.domain.value_objects.keys import fragment_name, validate_bucket_name

# Objects whose content is split into multipart fragments.
OBJECT_LARGE_TYPE = "large"


class ObjectInfo(Record):
    """An object in the store.

    Large objects reference ``part_total`` fragment records named after
    ``upload_id``; every other object keeps its data elsewhere.
    """

    name: str = ""
    size: int = 0
    bucket: str = ""
    etag: str = ""
    mod_time: datetime = Field(default=ZERO_TIME, alias="modifyTime")
    content_type: str = Field(default="", alias="contentType")
    content_encoding: str = Field(default="", alias="contentEncoding")
    type: str = ""
    ext_fields: ExtFields | None = Field(default=None, alias="extFields")
    upload_id: str = Field(default="", alias="uploadID")
    part_size: int = Field(default=0, alias="partSize")
    part_total: int = Field(default=0, alias="partTotal")
    version: str = ""

    @field_validator("bucket")
    @classmethod
    def _check_bucket(cls, v: str) -> str:
        return validate_bucket_name(v)

    def is_fragmented(self) -> bool:
        """Check if the object's content lives in multipart fragments."""
        return self.type == OBJECT_LARGE_TYPE

    def fragment_names(self) -> list[str]:
        """Names of every fragment this object owns.

        Returns:
            ``<uploadID>#<index>`` for indices ``0..part_total-1``, or an
            empty list for objects that are not fragmented.
        """
        if not self.is_fragmented():
            return []
        return [fragment_name(self.upload_id, i) for i in range(max(self.part_total, 0))]
