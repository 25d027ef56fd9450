"""
Domain models for HAPI resource extraction.

`ExtractedRecord` is the decoded shape of one `hfj_resource` / `hfj_res_ver`
row; `PartitionDescriptor` is one residue class of the resource-id space.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field

from hapi_extract.domain.errors import InvalidConfiguration


def require_int(name: str, value: object) -> int:
    """Return `value` if it is a plain int (not bool), else raise `InvalidConfiguration`."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
    return value


class PayloadEncoding(str, Enum):
    """Values of `hfj_res_ver.res_encoding` understood by the decoder."""

    PLAIN = "JSON"
    COMPRESSED = "JSONC"
    DELETED = "DEL"


@dataclass(frozen=True)
class PartitionDescriptor:
    """
    Rows of `resource_type` whose id satisfies `res_id % modulus == remainder`.
    """

    resource_type: str
    modulus: int
    remainder: int

    def __post_init__(self) -> None:
        require_int("modulus", self.modulus)
        require_int("remainder", self.remainder)
        if self.modulus < 1:
            raise InvalidConfiguration(f"modulus must be >= 1, got {self.modulus}")
        if not 0 <= self.remainder < self.modulus:
            raise InvalidConfiguration(
                f"remainder must be in [0, {self.modulus}), got {self.remainder}"
            )

    def owns(self, resource_id: int) -> bool:
        return resource_id % self.modulus == self.remainder


class ExtractedRecord(BaseModel):
    """
    One decoded resource version.
    """

    resource_id: str = Field(..., alias="resourceId", description="hfj_resource.res_id.")
    resource_type: str = Field(..., alias="resourceType", description="FHIR resource type.")
    resource_version: int = Field(..., alias="resourceVersion", description="Version number.")
    last_updated: str = Field(..., alias="lastUpdated", description="Store update timestamp.")
    payload: str = Field("", description="Resource JSON, empty for tombstones.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }

    @property
    def is_tombstone(self) -> bool:
        return self.payload == ""


__all__ = ["ExtractedRecord", "PartitionDescriptor", "PayloadEncoding", "require_int"]
