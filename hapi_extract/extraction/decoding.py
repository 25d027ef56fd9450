"""
Decoding of `hfj_res_ver` payloads.

HAPI stores each resource version either as raw JSON text (`JSON`), as
gzip-compressed JSON (`JSONC`), or as a tombstone (`DEL`). Drivers may hand the
content back as `bytes`, `memoryview` (bytea) or `str`.
"""

from __future__ import annotations

import gzip
import zlib
from datetime import datetime
from typing import Any, Mapping, Union

from hapi_extract.domain.errors import DecodeFailure, UnknownEncoding
from hapi_extract.domain.models import ExtractedRecord, PayloadEncoding
from hapi_extract.utils.logging import get_logger

log = get_logger(__name__)

Content = Union[bytes, bytearray, memoryview, str, None]


def _as_bytes(content: Content) -> bytes:
    if content is None:
        return b""
    if isinstance(content, str):
        return content.encode("utf-8")
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)
    raise TypeError(f"unsupported content type {type(content).__name__}")


def _resolve_encoding(resource_id: str, tag: Any) -> PayloadEncoding:
    if isinstance(tag, str):
        try:
            return PayloadEncoding(tag.strip())
        except ValueError:
            pass
    raise UnknownEncoding(resource_id, tag)


def decode_payload(resource_id: str, encoding: Any, content: Content) -> str:
    """
    Decode stored content into resource JSON text.

    Raises
    ------
    UnknownEncoding
        If `encoding` is not one of JSON, JSONC or DEL.
    DecodeFailure
        If compressed content cannot be inflated, the bytes are not valid UTF-8,
        or a non-deleted row decodes to nothing.
    """
    kind = _resolve_encoding(resource_id, encoding)
    if kind is PayloadEncoding.DELETED:
        return ""

    try:
        if kind is PayloadEncoding.PLAIN and isinstance(content, str):
            text = content
        else:
            raw = _as_bytes(content)
            if kind is PayloadEncoding.COMPRESSED:
                raw = gzip.decompress(raw)
            text = raw.decode("utf-8")
        # An empty payload is reserved for tombstones.
        if not text:
            raise ValueError("stored payload is empty")
    except (OSError, EOFError, zlib.error, UnicodeDecodeError, TypeError, ValueError) as exc:
        log.error(
            "Payload decode failed",
            extra={"resource_id": resource_id, "encoding": kind.value, "error": str(exc)},
        )
        raise DecodeFailure(resource_id, exc) from exc
    return text


def _timestamp(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return "" if value is None else str(value)


def decode_row(row: Mapping[str, Any]) -> ExtractedRecord:
    """
    Build an `ExtractedRecord` from one partition-query row.
    """
    resource_id = str(row["res_id"])
    return ExtractedRecord(
        resource_id=resource_id,
        resource_type=row["res_type"],
        resource_version=int(row["res_ver"]),
        last_updated=_timestamp(row["res_updated"]),
        payload=decode_payload(resource_id, row["res_encoding"], row["res_text"]),
    )


__all__ = ["decode_payload", "decode_row"]
