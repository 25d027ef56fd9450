"""
Infrastructure package for HAPI resource extraction.

Centralizes database connectivity concerns (DSNs, pools, psycopg row sources).
Keep this layer focused on I/O and resource management, decoupled from
planning and decoding logic.
"""

from hapi_extract.infrastructure.db_factory import (
    apply_statement_timeout,
    build_dsn,
    get_sync_connection,
    open_pool,
)
from hapi_extract.infrastructure.row_source import ConnectionRowSource, PooledRowSource

__all__ = [
    "ConnectionRowSource",
    "PooledRowSource",
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
    "open_pool",
]
