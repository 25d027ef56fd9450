"""
Exception types raised by the planner and the row fetcher.

Store connectivity errors are not wrapped: psycopg's own exceptions reach the
caller unchanged so the connection layer can decide whether to retry.
"""

from __future__ import annotations


class ExtractionError(Exception):
    """Base class for extraction failures."""


class InvalidConfiguration(ExtractionError, ValueError):
    """Partition or run parameters are malformed."""


class UnknownEncoding(ExtractionError):
    """A stored row carries an encoding tag outside the known set."""

    def __init__(self, resource_id: str, encoding: object) -> None:
        self.resource_id = resource_id
        self.encoding = encoding
        super().__init__(f"Unknown payload encoding {encoding!r} for resource id {resource_id}")


class DecodeFailure(ExtractionError):
    """A stored payload could not be decompressed or decoded as UTF-8."""

    def __init__(self, resource_id: str, cause: BaseException) -> None:
        self.resource_id = resource_id
        self.cause = cause
        super().__init__(f"Failed to decode payload for resource id {resource_id}: {cause}")


__all__ = ["DecodeFailure", "ExtractionError", "InvalidConfiguration", "UnknownEncoding"]
