from __future__ import annotations

import threading

import pytest

from hapi_extract.domain.errors import DecodeFailure, UnknownEncoding
from hapi_extract.domain.models import PartitionDescriptor
from hapi_extract.extraction.fetcher import count_resources, fetch
from hapi_extract.extraction.planner import plan
from hapi_extract.extraction.query import PARTITION_SQL

PATIENT_COUNT = 40


def _patient(modulus: int, remainder: int) -> PartitionDescriptor:
    return PartitionDescriptor(resource_type="Patient", modulus=modulus, remainder=remainder)


def test_fetch_returns_only_rows_of_the_partition(patient_rows, make_source):
    source = make_source(patient_rows)
    descriptor = _patient(6, 2)

    records = list(fetch(source, descriptor))

    assert records
    assert all(int(r.resource_id) % 6 == 2 for r in records)
    assert all(r.resource_type == "Patient" for r in records)
    assert len(records) == sum(1 for i in range(1, PATIENT_COUNT + 1) if i % 6 == 2)


def test_fetch_issues_exactly_one_query(patient_rows, make_source):
    source = make_source(patient_rows)
    descriptor = _patient(3, 0)

    list(fetch(source, descriptor))

    assert len(source.queries) == 1
    assert source.queries[0].sql == PARTITION_SQL
    assert source.queries[0].params == ("Patient", 3, 0)


def test_fetch_is_lazy_until_iterated(patient_rows, make_source):
    source = make_source(patient_rows)

    records = fetch(source, _patient(2, 1))

    assert source.queries == []
    next(records)
    assert len(source.queries) == 1


def test_refetching_a_descriptor_reruns_the_query(patient_rows, make_source):
    source = make_source(patient_rows)
    descriptor = _patient(4, 3)

    first = list(fetch(source, descriptor))
    second = list(fetch(source, descriptor))

    assert first == second
    assert len(source.queries) == 2


def test_full_run_yields_every_resource_once(patient_rows, make_source):
    source = make_source(patient_rows)
    pool_size, batch_count = 3, 4

    ids = [
        record.resource_id
        for batch_number in range(batch_count)
        for descriptor in plan("Patient", pool_size, batch_count, batch_number)
        for record in fetch(source, descriptor)
    ]

    assert sorted(ids, key=int) == [str(i) for i in range(1, PATIENT_COUNT + 1)]


def test_more_partitions_than_rows_yields_empty_partitions(make_source, row_factory):
    source = make_source([row_factory(1), row_factory(2)])

    per_partition = [list(fetch(source, d)) for d in plan("Patient", 8, 2, 0)]

    assert sum(len(p) for p in per_partition) == 2
    assert sum(1 for p in per_partition if not p) == 6


def test_tombstones_are_emitted_with_empty_payload(patient_rows, make_source):
    source = make_source(patient_rows)

    records = list(fetch(source, _patient(4, 2)))

    assert records
    assert all(r.is_tombstone for r in records)


def test_decode_failure_aborts_partition_and_releases_source(make_source, row_factory):
    rows = [
        row_factory(2, "JSON"),
        row_factory(4, "JSONC", content=b"broken"),
        row_factory(6, "JSON"),
    ]
    source = make_source(rows)
    emitted = []

    with pytest.raises(DecodeFailure) as excinfo:
        for record in fetch(source, _patient(2, 0)):
            emitted.append(record.resource_id)

    assert excinfo.value.resource_id == "4"
    assert emitted == ["2"]
    assert source.open_iterators == 0


def test_unknown_encoding_names_the_resource(make_source, row_factory):
    source = make_source([row_factory(5, "XYZ", content=b"{}")])

    with pytest.raises(UnknownEncoding) as excinfo:
        list(fetch(source, _patient(1, 0)))

    assert excinfo.value.resource_id == "5"
    assert source.open_iterators == 0


def test_abandoned_fetch_releases_source(patient_rows, make_source):
    source = make_source(patient_rows)
    records = fetch(source, _patient(1, 0))

    next(records)
    assert source.open_iterators == 1
    records.close()

    assert source.open_iterators == 0


def test_store_errors_propagate_unchanged(row_factory):
    class _FailingSource:
        def rows(self, query):
            yield row_factory(1)
            raise ConnectionResetError("server closed the connection")

    with pytest.raises(ConnectionResetError):
        list(fetch(_FailingSource(), _patient(1, 0)))


def test_concurrent_fetches_never_overlap(patient_rows, make_source):
    source = make_source(patient_rows, delay=0.001)
    results: dict[int, list[str]] = {}
    lock = threading.Lock()

    def worker(descriptor: PartitionDescriptor) -> None:
        ids = [r.resource_id for r in fetch(source, descriptor)]
        with lock:
            results[descriptor.remainder] = ids

    descriptors = [
        _patient(5, 1),
        _patient(5, 3),
    ]
    threads = [threading.Thread(target=worker, args=(d,)) for d in descriptors]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results[1] and results[3]
    assert set(results[1]).isdisjoint(results[3])
    assert source.open_iterators == 0


def test_count_resources_filters_by_type(patient_rows, make_source):
    source = make_source(patient_rows)

    assert count_resources(source, "Patient") == PATIENT_COUNT
    assert count_resources(source, "Observation") == 10
    assert count_resources(source, "Encounter") == 0
    assert source.open_iterators == 0


def test_count_resources_handles_empty_result():
    class _EmptySource:
        def rows(self, query):
            return iter(())

    assert count_resources(_EmptySource(), "Patient") == 0
