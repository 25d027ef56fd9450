"""
Partitioned row fetcher.

`fetch` is the unit of work an external executor fans out: one invocation per
`PartitionDescriptor`, each running a single range query and streaming decoded
records. Invocations share nothing, so they can run concurrently on threads or
processes as long as the caller keeps them within the connection-pool size.
"""

from __future__ import annotations

from typing import Iterator

from hapi_extract.domain.models import ExtractedRecord, PartitionDescriptor
from hapi_extract.extraction.decoding import decode_row
from hapi_extract.extraction.query import RowSource, build_count_query, build_partition_query
from hapi_extract.utils.logging import get_logger

log = get_logger(__name__)


def _close(row_iter: Iterator) -> None:
    close = getattr(row_iter, "close", None)
    if close is not None:
        close()


def fetch(source: RowSource, descriptor: PartitionDescriptor) -> Iterator[ExtractedRecord]:
    """
    Stream the decoded records of one partition.

    The query runs when iteration starts. Closing the iterator early (or letting it
    be garbage collected) closes the underlying row iterator, which returns the
    connection to its pool. Decode errors propagate and end the partition; no
    record is emitted for the failing row.
    """
    query = build_partition_query(descriptor)
    context = {
        "resource_type": descriptor.resource_type,
        "modulus": descriptor.modulus,
        "remainder": descriptor.remainder,
    }
    log.debug("Partition fetch started", extra=context)

    rows = 0
    tombstones = 0
    row_iter = source.rows(query)
    try:
        for row in row_iter:
            record = decode_row(row)
            rows += 1
            if record.is_tombstone:
                tombstones += 1
            yield record
    finally:
        _close(row_iter)

    log.debug("Partition fetch finished", extra={**context, "rows": rows, "tombstones": tombstones})


def count_resources(source: RowSource, resource_type: str) -> int:
    """Row-count estimate for sizing a run over `resource_type`."""
    row_iter = source.rows(build_count_query(resource_type))
    try:
        row = next(iter(row_iter), None)
    finally:
        _close(row_iter)
    return int(row["total"]) if row is not None else 0


__all__ = ["count_resources", "fetch"]
