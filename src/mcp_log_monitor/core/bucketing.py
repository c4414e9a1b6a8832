"""Split a time window into equal-width buckets of records."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
from datetime import datetime, timedelta

from .models import LogRecord, TimeBucket

_MICROSECOND = timedelta(microseconds=1)


def boundaries(begin: datetime, end: datetime, n: int) -> list[datetime]:
    """Return the n + 1 bucket edges of [begin, end).

    Each edge is computed from ``begin`` with integer microseconds so rounding
    never accumulates across buckets.
    """
    if n < 1:
        raise ValueError("number of buckets must be >= 1")
    if end <= begin:
        raise ValueError("end must be after begin")
    span = (end - begin) // _MICROSECOND
    return [begin + timedelta(microseconds=span * i // n) for i in range(n)] + [end]


def bucket(
    begin: datetime, end: datetime, n: int, records: Iterable[LogRecord]
) -> list[TimeBucket]:
    """Group records into n contiguous half-open buckets covering [begin, end).

    A timestamp equal to an edge belongs to the bucket it starts. Records
    outside the window raise ValueError.
    """
    edges = boundaries(begin, end, n)
    inner = edges[1:-1]
    grouped: list[list[LogRecord]] = [[] for _ in range(n)]
    for r in records:
        if not begin <= r.timestamp < end:
            raise ValueError(
                f"record at {r.timestamp.isoformat()} is outside "
                f"[{begin.isoformat()}, {end.isoformat()})"
            )
        grouped[bisect_right(inner, r.timestamp)].append(r)
    return [
        TimeBucket(start=edges[i], end=edges[i + 1], records=tuple(grouped[i])) for i in range(n)
    ]


def traffic(buckets: Iterable[TimeBucket]) -> list[int]:
    """Return the number of records in each bucket."""
    return [len(b) for b in buckets]
