"""
Extraction package: partition planning, the row-source seam, payload decoding
and the per-partition fetcher.
"""

from hapi_extract.extraction.decoding import decode_payload, decode_row
from hapi_extract.extraction.fetcher import count_resources, fetch
from hapi_extract.extraction.planner import plan, plan_run
from hapi_extract.extraction.query import (
    RangeQuery,
    RowSource,
    build_count_query,
    build_partition_query,
)

__all__ = [
    "RangeQuery",
    "RowSource",
    "build_count_query",
    "build_partition_query",
    "count_resources",
    "decode_payload",
    "decode_row",
    "fetch",
    "plan",
    "plan_run",
]
