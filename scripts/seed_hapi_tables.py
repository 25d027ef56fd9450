"""
Seed HAPI-shaped tables for local runs and integration tests.

Creates minimal `hfj_resource` / `hfj_res_ver` tables (only the columns the
extractor reads) and fills them with deterministic resources. Every resource
gets one or more versions; the current version is stored as plain JSON,
gzip-compressed JSON or a tombstone according to a seeded RNG.
"""

from __future__ import annotations

import gzip
import json
import random
from datetime import datetime, timedelta
from typing import List, Tuple

import psycopg
import typer

from hapi_extract.config import get_settings
from hapi_extract.infrastructure.db_factory import build_dsn
from hapi_extract.utils.logging import configure_logging, get_logger

log = get_logger(__name__)

app = typer.Typer(help="Create and seed HAPI resource tables in Postgres.")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS hfj_resource (
    res_id BIGINT PRIMARY KEY,
    res_type VARCHAR(40) NOT NULL,
    res_updated TIMESTAMP NOT NULL,
    res_ver BIGINT NOT NULL
);
CREATE TABLE IF NOT EXISTS hfj_res_ver (
    pid BIGSERIAL PRIMARY KEY,
    res_id BIGINT NOT NULL,
    res_ver BIGINT NOT NULL,
    res_encoding VARCHAR(5) NOT NULL,
    res_text BYTEA
);
CREATE INDEX IF NOT EXISTS idx_res_ver_id ON hfj_res_ver (res_id, res_ver);
"""

ResourceRow = Tuple[int, str, datetime, int]
VersionRow = Tuple[int, int, str, bytes | None]


def _resource_json(rng: random.Random, resource_type: str, res_id: int, version: int) -> str:
    return json.dumps(
        {
            "resourceType": resource_type,
            "id": str(res_id),
            "meta": {"versionId": str(version)},
            "active": rng.choice([True, False]),
            "name": [{"family": rng.choice(["Okafor", "Silva", "Nakamura", "Müller"])}],
        },
        ensure_ascii=False,
    )


def generate_rows(
    rows: int, resource_type: str, seed: int, start_id: int = 1
) -> Tuple[List[ResourceRow], List[VersionRow]]:
    """
    Deterministic resource and version rows.

    Returns
    -------
    tuple
        (`hfj_resource` rows, `hfj_res_ver` rows).
    """
    rng = random.Random(seed)
    base = datetime(2024, 1, 1)
    resources: List[ResourceRow] = []
    versions: List[VersionRow] = []

    for res_id in range(start_id, start_id + rows):
        current = rng.randint(1, 3)
        for version in range(1, current + 1):
            body = _resource_json(rng, resource_type, res_id, version).encode("utf-8")
            if version < current:
                versions.append((res_id, version, "JSON", body))
                continue
            encoding = rng.choice(["JSON", "JSONC", "DEL"])
            if encoding == "JSONC":
                content: bytes | None = gzip.compress(body)
            elif encoding == "DEL":
                content = None
            else:
                content = body
            versions.append((res_id, version, encoding, content))
        updated = base + timedelta(minutes=res_id)
        resources.append((res_id, resource_type, updated, current))

    return resources, versions


def seed(dsn: str, rows: int, resource_type: str, seed_value: int, start_id: int = 1) -> int:
    """Create the tables if needed and insert `rows` resources. Returns rows inserted."""
    resources, versions = generate_rows(rows, resource_type, seed_value, start_id)
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
            cur.executemany(
                "INSERT INTO hfj_resource (res_id, res_type, res_updated, res_ver) "
                "VALUES (%s, %s, %s, %s)",
                resources,
            )
            cur.executemany(
                "INSERT INTO hfj_res_ver (res_id, res_ver, res_encoding, res_text) "
                "VALUES (%s, %s, %s, %s)",
                versions,
            )
        conn.commit()
    return len(resources)


def truncate(dsn: str) -> None:
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
            cur.execute("TRUNCATE TABLE hfj_res_ver, hfj_resource RESTART IDENTITY;")
        conn.commit()


@app.command()
def main(
    rows: int = typer.Option(1_000, "--rows", "-r", help="Resources to insert."),
    resource_type: str = typer.Option("Patient", "--resource-type", "-t"),
    seed_value: int = typer.Option(42, "--seed", help="RNG seed."),
    start_id: int = typer.Option(1, "--start-id", help="First res_id to use."),
    reset: bool = typer.Option(False, "--reset", help="Truncate tables before seeding."),
    dsn: str | None = typer.Option(None, "--dsn", help="Override DSN (defaults to settings)."),
) -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    target = dsn or build_dsn(settings)
    if reset:
        truncate(target)
    inserted = seed(target, rows, resource_type, seed_value, start_id)
    log.info("Seed complete", extra={"resource_type": resource_type, "rows": inserted})
    typer.echo(f"Inserted {inserted} {resource_type} resources.")


if __name__ == "__main__":
    app()
