"""Bucket record."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from orphan_sweeper.domain.entities.common import ZERO_TIME, ExtFields, Record
from orphan_sweeper.domain.value_objects.keys import validate_bucket_name


class BucketInfo(Record):
    """A bucket (namespace) for objects."""

    name: str = ""
    type: str = ""
    create_time: datetime = Field(default=ZERO_TIME, alias="createTime")
    ext_fields: ExtFields | None = Field(default=None, alias="extFields")

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        return validate_bucket_name(v)
