"""
In-process driver for a full extraction run over one resource type.

Batches run one after another; within a batch every partition is fetched on its
own worker thread, with at most `config.pool_size` workers so the run never asks
for more connections than the pool holds. Records are handed to a caller-supplied
sink as they are decoded.

Usage:
    from hapi_extract.orchestrator import run_extraction

    pool = open_pool(max_size=config.pool_size)
    summary = run_extraction(PooledRowSource(pool), config, sink=writer.write)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from hapi_extract.config import ExtractionConfig
from hapi_extract.domain.models import ExtractedRecord, PartitionDescriptor
from hapi_extract.extraction.fetcher import fetch
from hapi_extract.extraction.planner import plan_run
from hapi_extract.extraction.query import RowSource
from hapi_extract.utils.logging import get_logger
from hapi_extract.utils.profiler import profile_block

log = get_logger(__name__)

Sink = Callable[[ExtractedRecord], None]


@dataclass
class PartitionResult:
    descriptor: PartitionDescriptor
    rows: int = 0
    tombstones: int = 0
    error: Optional[BaseException] = None


@dataclass
class ExtractionSummary:
    """
    Outcome of `run_extraction`.
    """

    resource_type: str
    modulus: int
    records: int = 0
    tombstones: int = 0
    partitions: Dict[int, int] = field(default_factory=dict)
    failed_partitions: Dict[int, str] = field(default_factory=dict)
    duration_seconds: float = 0.0
    peak_rss_bytes: Optional[int] = None

    @property
    def ok(self) -> bool:
        return not self.failed_partitions


def _drain(source: RowSource, descriptor: PartitionDescriptor, sink: Sink) -> PartitionResult:
    result = PartitionResult(descriptor=descriptor)
    try:
        for record in fetch(source, descriptor):
            sink(record)
            result.rows += 1
            if record.is_tombstone:
                result.tombstones += 1
    except Exception as exc:  # noqa: BLE001 - recorded and re-raised by the caller
        log.exception(
            "Partition failed",
            extra={
                "resource_type": descriptor.resource_type,
                "modulus": descriptor.modulus,
                "remainder": descriptor.remainder,
            },
        )
        result.error = exc
    return result


def run_extraction(
    source: RowSource,
    config: ExtractionConfig,
    sink: Sink,
    fail_fast: bool = True,
) -> ExtractionSummary:
    """
    Extract every partition of `config.resource_type`.

    Parameters
    ----------
    source : RowSource
        Where partitions are read from. Must tolerate `config.pool_size`
        concurrent `rows()` calls (a `PooledRowSource` does).
    config : ExtractionConfig
        Resource type, pool size and batch count of the run.
    sink : callable
        Receives each record; called from worker threads, so it must be thread-safe.
    fail_fast : bool
        If True, the first partition error is re-raised once its batch has
        finished and later batches are not started. If False, failed partitions
        are recorded in the summary and the run continues.

    Returns
    -------
    ExtractionSummary
        Record counts per remainder and profiling stats.
    """
    summary = ExtractionSummary(resource_type=config.resource_type, modulus=config.modulus)
    batches = plan_run(config)

    with profile_block(f"extract-{config.resource_type}") as stats:
        with ThreadPoolExecutor(
            max_workers=config.pool_size, thread_name_prefix="hapi-extract"
        ) as executor:
            for batch_number, descriptors in enumerate(batches):
                log.info(
                    f"[BATCH {batch_number + 1}/{len(batches)}] {config.resource_type}",
                    extra={
                        "resource_type": config.resource_type,
                        "batch": batch_number,
                        "partitions": len(descriptors),
                    },
                )
                results: List[PartitionResult] = list(
                    executor.map(lambda d: _drain(source, d, sink), descriptors)
                )

                first_error: Optional[BaseException] = None
                for result in results:
                    remainder = result.descriptor.remainder
                    summary.partitions[remainder] = result.rows
                    summary.records += result.rows
                    summary.tombstones += result.tombstones
                    if result.error is not None:
                        summary.failed_partitions[remainder] = str(result.error)
                        first_error = first_error or result.error

                if first_error is not None and fail_fast:
                    raise first_error

    summary.duration_seconds = stats.duration_seconds
    summary.peak_rss_bytes = stats.peak_rss_bytes
    log.info(
        f"[EXTRACTION COMPLETE] {config.resource_type}",
        extra={
            "resource_type": config.resource_type,
            "records": summary.records,
            "tombstones": summary.tombstones,
            "failed_partitions": len(summary.failed_partitions),
            "duration": round(summary.duration_seconds, 2),
        },
    )
    return summary


def collect(source: RowSource, config: ExtractionConfig) -> List[ExtractedRecord]:
    """Run a full extraction and return every record in a list."""
    records: List[ExtractedRecord] = []
    # list.append is atomic under the GIL
    run_extraction(source, config, sink=records.append)
    return records


__all__ = ["ExtractionSummary", "PartitionResult", "collect", "run_extraction"]
