"""
psycopg-backed row sources.

Both adapters stream results through a named (server-side) cursor so a large
partition is never buffered in memory, and both hold database resources only
while the returned iterator is live: closing the iterator early, an exception
in the consumer, or garbage collection all unwind the `with` blocks below.
"""

from __future__ import annotations

import itertools
from typing import Any, Iterator, Mapping, Optional

from psycopg import Connection
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from hapi_extract.config import get_settings
from hapi_extract.extraction.query import RangeQuery
from hapi_extract.infrastructure.db_factory import apply_statement_timeout

_cursor_ids = itertools.count(1)


def _stream(
    conn: Connection, query: RangeQuery, fetch_size: int, timeout_ms: int
) -> Iterator[Mapping[str, Any]]:
    apply_statement_timeout(conn, timeout_ms)
    with conn.cursor(name=f"hapi_extract_{next(_cursor_ids)}", row_factory=dict_row) as cur:
        cur.itersize = fetch_size
        cur.execute(query.sql, query.params)
        for row in cur:
            yield row


class PooledRowSource:
    """
    Runs each query on its own connection checked out of a psycopg pool.

    Safe to share between threads: every `rows()` call takes a separate
    connection, so concurrency is bounded by the pool's `max_size`.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        fetch_size: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.pool = pool
        self.fetch_size = fetch_size or settings.extract_fetch_size
        self.statement_timeout_ms = (
            settings.db_statement_timeout_ms
            if statement_timeout_ms is None
            else statement_timeout_ms
        )

    def rows(self, query: RangeQuery) -> Iterator[Mapping[str, Any]]:
        # pool.connection() commits on exit and rolls back on error.
        with self.pool.connection() as conn:
            yield from _stream(conn, query, self.fetch_size, self.statement_timeout_ms)


class ConnectionRowSource:
    """
    Runs queries on a single caller-owned connection.

    Not safe for concurrent use; intended for tests, scripts and single-worker
    executors. Each query runs in its own transaction, which is closed when the
    iterator finishes.
    """

    def __init__(
        self,
        conn: Connection,
        fetch_size: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.conn = conn
        self.fetch_size = fetch_size or settings.extract_fetch_size
        self.statement_timeout_ms = (
            settings.db_statement_timeout_ms
            if statement_timeout_ms is None
            else statement_timeout_ms
        )

    def rows(self, query: RangeQuery) -> Iterator[Mapping[str, Any]]:
        with self.conn.transaction():
            yield from _stream(self.conn, query, self.fetch_size, self.statement_timeout_ms)


__all__ = ["ConnectionRowSource", "PooledRowSource"]
