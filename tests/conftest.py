"""
Pytest configuration for hapi-extract.

Provides fixtures for:
- In-memory HAPI rows and a fake row source that honours partition queries
- Database connection management for integration tests
- Settings override for integration tests
"""

from __future__ import annotations

import gzip
import json
import os
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Generator, Iterator, List, Optional

import psycopg
import pytest

from hapi_extract.config import Settings
from hapi_extract.extraction.query import COUNT_SQL, PARTITION_SQL, RangeQuery

Row = Dict[str, Any]


def _body(res_id: int, resource_type: str) -> str:
    return json.dumps({"resourceType": resource_type, "id": str(res_id), "note": "größe ✓"})


def make_row(
    res_id: int,
    encoding: str = "JSON",
    resource_type: str = "Patient",
    version: int = 1,
    text: Optional[str] = None,
    content: Any = ...,
) -> Row:
    """One partition-query row. `content` overrides the encoded `text` verbatim."""
    text = text if text is not None else _body(res_id, resource_type)
    if content is ...:
        if encoding == "JSONC":
            content = gzip.compress(text.encode("utf-8"))
        elif encoding == "DEL":
            content = None
        else:
            content = text.encode("utf-8")
    return {
        "res_id": res_id,
        "res_type": resource_type,
        "res_updated": datetime(2024, 1, 1) + timedelta(minutes=res_id),
        "res_ver": version,
        "res_encoding": encoding,
        "res_text": content,
    }


class FakeRowSource:
    """
    Evaluates partition and count queries against a list of rows.

    Tracks how many row iterators are open at once so tests can check
    connection release and the concurrency bound.
    """

    def __init__(self, rows: List[Row], delay: float = 0.0) -> None:
        self._rows = rows
        self._delay = delay
        self._lock = threading.Lock()
        self.queries: List[RangeQuery] = []
        self.open_iterators = 0
        self.max_open_iterators = 0

    def rows(self, query: RangeQuery) -> Iterator[Row]:
        with self._lock:
            self.queries.append(query)
            self.open_iterators += 1
            self.max_open_iterators = max(self.max_open_iterators, self.open_iterators)
        try:
            if query.sql == COUNT_SQL:
                (resource_type,) = query.params
                yield {"total": sum(1 for r in self._rows if r["res_type"] == resource_type)}
                return
            assert query.sql == PARTITION_SQL
            resource_type, modulus, remainder = query.params
            for row in self._rows:
                if row["res_type"] == resource_type and row["res_id"] % modulus == remainder:
                    if self._delay:
                        time.sleep(self._delay)
                    yield dict(row)
        finally:
            with self._lock:
                self.open_iterators -= 1


@pytest.fixture
def patient_rows() -> List[Row]:
    """40 Patient rows cycling through all three encodings, plus some Observations."""
    encodings = ["JSON", "JSONC", "DEL", "JSON"]
    rows = [make_row(res_id, encodings[res_id % 4]) for res_id in range(1, 41)]
    rows += [make_row(res_id, "JSON", resource_type="Observation") for res_id in range(41, 51)]
    return rows


@pytest.fixture
def make_source() -> Callable[..., FakeRowSource]:
    def _factory(rows: List[Row], delay: float = 0.0) -> FakeRowSource:
        return FakeRowSource(rows, delay=delay)

    return _factory


@pytest.fixture
def row_factory() -> Callable[..., Row]:
    return make_row


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "hapi"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def seeded_hapi_tables(
    db_connection: psycopg.Connection, test_dsn: str
) -> Generator[int, None, None]:
    """
    Reset and seed 200 Patient and 30 Observation resources.

    Returns the number of Patient resources seeded.
    """
    from scripts.seed_hapi_tables import seed, truncate

    truncate(test_dsn)
    patients = seed(test_dsn, rows=200, resource_type="Patient", seed_value=42)
    seed(test_dsn, rows=30, resource_type="Observation", seed_value=7, start_id=1_000)
    yield patients
    truncate(test_dsn)
