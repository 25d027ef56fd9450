"""
Domain package for HAPI resource extraction.

Exports the record and partition models plus the extraction exception types.
Keep this package focused on data definitions and validation concerns.
"""

from hapi_extract.domain.errors import (
    DecodeFailure,
    ExtractionError,
    InvalidConfiguration,
    UnknownEncoding,
)
from hapi_extract.domain.models import ExtractedRecord, PartitionDescriptor, PayloadEncoding

__all__ = [
    "DecodeFailure",
    "ExtractedRecord",
    "ExtractionError",
    "InvalidConfiguration",
    "PartitionDescriptor",
    "PayloadEncoding",
    "UnknownEncoding",
]
