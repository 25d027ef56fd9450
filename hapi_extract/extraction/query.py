"""
SQL for the HAPI resource tables and the row-source seam the fetcher reads through.

Queries are built as `RangeQuery` values (SQL text in psycopg's `%s` paramstyle
plus positional parameters). Anything able to run such a query and yield rows as
mappings can act as a `RowSource`; the psycopg adapters live in
`hapi_extract.infrastructure.row_source`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Protocol, Tuple, runtime_checkable

from hapi_extract.domain.models import PartitionDescriptor

# Joining on res_ver picks the payload of the version hfj_resource points at.
PARTITION_SQL = (
    "SELECT res.res_id, res.res_type, res.res_updated, res.res_ver, "
    "ver.res_encoding, ver.res_text "
    "FROM hfj_resource res "
    "JOIN hfj_res_ver ver ON ver.res_id = res.res_id AND ver.res_ver = res.res_ver "
    "WHERE res.res_type = %s AND MOD(res.res_id, %s) = %s"
)

COUNT_SQL = "SELECT COUNT(*) AS total FROM hfj_resource WHERE res_type = %s"


@dataclass(frozen=True)
class RangeQuery:
    sql: str
    params: Tuple[Any, ...]


@runtime_checkable
class RowSource(Protocol):
    """
    Accepts a parameterized query and yields result rows as column-name mappings.

    Implementations hold whatever store resource they need (a pooled connection,
    a cursor) only while the returned iterator is being consumed, and must release
    it when the iterator is exhausted, raises, or is closed early.
    """

    def rows(self, query: RangeQuery) -> Iterator[Mapping[str, Any]]:
        ...


def build_partition_query(descriptor: PartitionDescriptor) -> RangeQuery:
    return RangeQuery(
        sql=PARTITION_SQL,
        params=(descriptor.resource_type, descriptor.modulus, descriptor.remainder),
    )


def build_count_query(resource_type: str) -> RangeQuery:
    return RangeQuery(sql=COUNT_SQL, params=(resource_type,))


__all__ = [
    "COUNT_SQL",
    "PARTITION_SQL",
    "RangeQuery",
    "RowSource",
    "build_count_query",
    "build_partition_query",
]
