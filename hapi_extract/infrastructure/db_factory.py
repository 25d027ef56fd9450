"""
Database connection factory utilities for HAPI resource extraction.

Builds DSNs from settings and opens psycopg connections and pools. Opening is
retried with exponential backoff via tenacity, since extraction workers often
start before the FHIR server's database accepts connections. Once a query is
running, connectivity errors are no longer retried here; they reach the caller.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool, PoolTimeout
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from hapi_extract.config import Settings, get_settings
from hapi_extract.utils.logging import get_logger

log = get_logger(__name__)

_CONNECT_RETRY = dict(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError, PoolTimeout)),
    reraise=True,
)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@retry(**_CONNECT_RETRY)
def get_sync_connection(settings: Optional[Settings] = None) -> Connection:
    """
    Open a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(build_dsn(settings))


@retry(**_CONNECT_RETRY)
def _open_ready_pool(conninfo: str, max_size: int, timeout: float) -> ConnectionPool:
    # ConnectionPool.wait() closes the pool on timeout, so each attempt needs a new one.
    pool = ConnectionPool(conninfo=conninfo, min_size=1, max_size=max_size, open=True)
    try:
        pool.wait(timeout=timeout)
    except Exception:
        pool.close()
        raise
    return pool


def open_pool(
    max_size: Optional[int] = None,
    settings: Optional[Settings] = None,
    wait_timeout: float = 30.0,
) -> ConnectionPool:
    """
    Open a connection pool sized for one extraction batch.

    Parameters
    ----------
    max_size : int, optional
        Maximum total connections. Defaults to `settings.extract_pool_size`; pass
        the same value used as the planner's `pool_size`.
    settings : Settings, optional
        Connection settings. Defaults to the cached environment settings.
    wait_timeout : float
        Seconds to wait for the pool's first connections on each attempt. Every
        attempt opens a fresh pool; a timed-out pool is closed before the retry.

    Returns
    -------
    ConnectionPool
        An opened pool; the caller owns it and must close it.
    """
    settings = settings or get_settings()
    size = max_size or settings.extract_pool_size
    pool = _open_ready_pool(build_dsn(settings), size, wait_timeout)
    log.info(
        "Connection pool ready",
        extra={"db_host": settings.db_host, "db_name": settings.db_name, "max_size": size},
    )
    return pool


def apply_statement_timeout(conn: Connection, timeout_ms: int) -> None:
    """
    Limit statements in the connection's current transaction to `timeout_ms`.

    A value of 0 or less leaves the server default in place.
    """
    if timeout_ms <= 0:
        return
    conn.execute("SELECT set_config('statement_timeout', %s, true)", (str(timeout_ms),))


__all__ = [
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
    "open_pool",
]
