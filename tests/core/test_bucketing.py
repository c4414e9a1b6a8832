from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from mcp_log_monitor.core.bucketing import boundaries, bucket, traffic

T0 = datetime(2018, 5, 9, 18, 0, 0, tzinfo=UTC)
S = timedelta(seconds=1)


def test_records_land_in_half_open_buckets(make_record) -> None:
    records = [make_record(T0 + S), make_record(T0 + 4 * S), make_record(T0 + 5 * S)]
    buckets = bucket(T0, T0 + 10 * S, 5, records)

    assert len(buckets) == 5
    assert traffic(buckets) == [1, 0, 2, 0, 0]
    assert buckets[0].start == T0
    assert buckets[0].end == T0 + 2 * S
    assert buckets[2].start == T0 + 4 * S
    assert buckets[2].end == T0 + 6 * S
    assert [r.timestamp for r in buckets[2].records] == [T0 + 4 * S, T0 + 5 * S]
    assert buckets[1].records == ()


def test_boundary_belongs_to_bucket_it_starts(make_record) -> None:
    records = [make_record(T0), make_record(T0 + 2 * S), make_record(T0 + 10 * S - timedelta(microseconds=1))]
    assert traffic(bucket(T0, T0 + 10 * S, 5, records)) == [1, 1, 0, 0, 1]


def test_empty_input_yields_empty_buckets() -> None:
    buckets = bucket(T0, T0 + 5 * timedelta(minutes=1), 10, [])
    assert traffic(buckets) == [0] * 10
    assert buckets[-1].end == T0 + timedelta(minutes=5)


def test_boundaries_are_contiguous_without_drift() -> None:
    edges = boundaries(T0, T0 + S, 3)
    assert edges[0] == T0
    assert edges[-1] == T0 + S
    assert edges[1] == T0 + timedelta(microseconds=333333)
    assert edges[2] == T0 + timedelta(microseconds=666666)


def test_bucket_is_deterministic(make_record) -> None:
    records = [make_record(T0 + i * S) for i in range(0, 60, 7)]
    first = bucket(T0, T0 + timedelta(minutes=1), 7, records)
    second = bucket(T0, T0 + timedelta(minutes=1), 7, records)
    assert first == second
    assert sum(traffic(first)) == len(records)


@pytest.mark.parametrize("n", [0, -1])
def test_invalid_bucket_count(n: int) -> None:
    with pytest.raises(ValueError):
        bucket(T0, T0 + S, n, [])


def test_invalid_window() -> None:
    with pytest.raises(ValueError):
        bucket(T0, T0, 5, [])


@pytest.mark.parametrize("offset", [-S, 10 * S])
def test_out_of_range_record_raises(make_record, offset: timedelta) -> None:
    with pytest.raises(ValueError):
        bucket(T0, T0 + 10 * S, 5, [make_record(T0 + offset)])
