"""
Partition planning for parallel resource extraction.

A run over one resource type is split into `batch_count` sequential batches,
each fanned out over `pool_size` connections. Every (batch, slot) pair owns one
residue class of `res_id mod (batch_count * pool_size)`, so the partitions of a
full run cover the id space exactly once:

    pool_size=4, batch_count=3  ->  modulus 12
    batch 0: remainders 0..3
    batch 1: remainders 4..7
    batch 2: remainders 8..11

Resource types with fewer rows than the modulus simply produce some empty
partitions.
"""

from __future__ import annotations

from typing import List

from hapi_extract.config import ExtractionConfig
from hapi_extract.domain.errors import InvalidConfiguration
from hapi_extract.domain.models import PartitionDescriptor, require_int


def plan(
    resource_type: str, pool_size: int, batch_count: int, batch_number: int
) -> List[PartitionDescriptor]:
    """
    Descriptors for one batch of a run.

    Parameters
    ----------
    resource_type : str
        Resource type being extracted.
    pool_size : int
        Connections available to the batch; also the number of descriptors returned.
    batch_count : int
        Number of sequential batches in the run.
    batch_number : int
        Zero-based index of the batch being planned.

    Raises
    ------
    InvalidConfiguration
        If any count is below one or `batch_number` is outside `[0, batch_count)`.
    """
    pool_size = require_int("pool_size", pool_size)
    batch_count = require_int("batch_count", batch_count)
    batch_number = require_int("batch_number", batch_number)
    if not resource_type:
        raise InvalidConfiguration("resource_type must be a non-empty string")
    if pool_size < 1:
        raise InvalidConfiguration(f"pool_size must be >= 1, got {pool_size}")
    if batch_count < 1:
        raise InvalidConfiguration(f"batch_count must be >= 1, got {batch_count}")
    if not 0 <= batch_number < batch_count:
        raise InvalidConfiguration(
            f"batch_number must be in [0, {batch_count}), got {batch_number}"
        )

    modulus = batch_count * pool_size
    offset = batch_number * pool_size
    return [
        PartitionDescriptor(resource_type=resource_type, modulus=modulus, remainder=i + offset)
        for i in range(pool_size)
    ]


def plan_run(config: ExtractionConfig) -> List[List[PartitionDescriptor]]:
    """Descriptors for every batch of a run, in batch order."""
    return [
        plan(config.resource_type, config.pool_size, config.batch_count, batch_number)
        for batch_number in range(config.batch_count)
    ]


__all__ = ["plan", "plan_run"]
