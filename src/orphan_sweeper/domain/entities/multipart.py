"""Multipart upload records."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from orphan_sweeper.domain.entities.common import ZERO_TIME, ExtFields, FragmentLocation, Record
from orphan_sweeper.domain.value_objects.keys import validate_bucket_name


class MultipartPart(Record):
    """One stored fragment of a large object.

    ``locations`` maps the fragment onto blob-store handles, which is what
    a physical deletion pass needs to reclaim the data.
    """

    size: int = Field(default=0, alias="Size")
    etag: str = Field(default="", alias="Etag")
    locations: list[FragmentLocation] | None = Field(default=None, alias="FidInfos")


class MultipartUpload(Record):
    """Upload-level record written when a multipart upload is initiated."""

    version: str = ""
    bucket: str = ""
    object: str = ""
    content_type: str = Field(default="", alias="contentType")
    content_encoding: str = Field(default="", alias="contentEncoding")
    mod_time: datetime = Field(default=ZERO_TIME, alias="modifyTime")
    ext_fields: ExtFields | None = Field(default=None, alias="extFields")

    @field_validator("bucket")
    @classmethod
    def _check_bucket(cls, v: str) -> str:
        return validate_bucket_name(v)
