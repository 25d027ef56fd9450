"""
hapi-extract - partitioned extraction of FHIR resources from a HAPI server's database.

The package provides:

- A partition planner that splits a resource type's id space into disjoint
  `res_id mod N` ranges, sized by batch count and connection-pool size
- A per-partition fetcher that streams rows and decodes JSON, gzip-compressed
  JSON and tombstone payloads into typed records
- psycopg row sources and pool helpers, plus an in-process run driver

External executors only need `plan` (or `plan_run`) and `fetch`.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from hapi_extract.config import ExtractionConfig, Settings, batch_count_for, get_settings
from hapi_extract.domain import (
    DecodeFailure,
    ExtractedRecord,
    ExtractionError,
    InvalidConfiguration,
    PartitionDescriptor,
    PayloadEncoding,
    UnknownEncoding,
)
from hapi_extract.extraction import RangeQuery, RowSource, count_resources, fetch, plan, plan_run
from hapi_extract.orchestrator import ExtractionSummary, collect, run_extraction
from hapi_extract.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "ExtractionConfig",
    "Settings",
    "batch_count_for",
    "get_settings",
    # Domain
    "ExtractedRecord",
    "PartitionDescriptor",
    "PayloadEncoding",
    # Errors
    "DecodeFailure",
    "ExtractionError",
    "InvalidConfiguration",
    "UnknownEncoding",
    # Extraction
    "RangeQuery",
    "RowSource",
    "count_resources",
    "fetch",
    "plan",
    "plan_run",
    # Driver
    "ExtractionSummary",
    "collect",
    "run_extraction",
    # Logging
    "configure_logging",
    "get_logger",
]
