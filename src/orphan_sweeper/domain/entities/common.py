"""Shared pieces of the stored metadata records."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

# Value a missing timestamp decodes to.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


class Record(BaseModel):
    """Base for every JSON record kept in the metadata store.

    Fields are written under their wire names (``by_alias``) and can be
    populated by either name. Unknown keys are ignored on decode.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def encode(self) -> bytes:
        """Serialize the record to its stored JSON form."""
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def decode(cls, raw: bytes | str):
        """Parse a stored JSON value.

        Raises:
            pydantic.ValidationError: If the value is not a valid record.
        """
        return cls.model_validate_json(raw)


class FragmentLocation(Record):
    """Where one piece of a fragment lives in the blob store."""

    id: str = Field(default="", alias="FileId")
    offset: int = Field(default=0, alias="Offset")
    size: int = Field(default=0, alias="FileSize")


class ExtFields(BaseModel):
    """Optional extension fields attached to buckets and objects.

    ``fids`` holds blob locations for objects stored inline. Keys this
    schema does not name are kept as-is so that a rewrite does not lose
    them.
    """

    model_config = ConfigDict(extra="allow")

    fids: list[FragmentLocation] | None = None
