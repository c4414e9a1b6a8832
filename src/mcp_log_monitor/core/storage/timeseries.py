"""Append-only store of parsed log records with windowed aggregation queries.

Every query filters on ``begin <= timestamp <= end`` (inclusive on both ends)
and is scoped to the single log file the store was created for.

Grouped counts are ordered by count descending. Equal counts are ordered by
first appearance: the group whose earliest row inside the window was inserted
first comes first.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from ..errors import NotFoundError, StorageError
from ..models import LogRecord, SectionCount, StatusCount, extract_section

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MICROSECOND = timedelta(microseconds=1)

_INSERT = (
    "INSERT INTO loglines "
    "(remote_host, user, authuser, timestamp, request_method, "
    "request_section, request_path, response_status, response_bytes, log_file) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
)

_WINDOW = "log_file = ? AND timestamp BETWEEN ? AND ?"


def to_micros(ts: datetime) -> int:
    """Convert a datetime to integer epoch microseconds (naive means UTC)."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return (ts - _EPOCH) // _MICROSECOND


def from_micros(value: int) -> datetime:
    """Convert integer epoch microseconds back into a UTC datetime."""
    return _EPOCH + timedelta(microseconds=value)


class TimeSeriesStore:
    """Record and query log lines for one log file."""

    def __init__(self, conn: sqlite3.Connection, log_file: str) -> None:
        self._conn = conn
        self.log_file = log_file

    def _row(self, r: LogRecord) -> tuple:
        return (
            r.host,
            r.user,
            r.auth_user,
            to_micros(r.timestamp),
            r.method,
            extract_section(r.path),
            r.path,
            r.status,
            r.response_bytes,
            self.log_file,
        )

    def _params(self, begin: datetime, end: datetime) -> tuple:
        return (self.log_file, to_micros(begin), to_micros(end))

    def _query(self, sql: str, params: tuple) -> list[tuple]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Query failed for {self.log_file}: {exc}") from exc

    def record(self, r: LogRecord) -> int:
        """Append one record and return the number of rows written."""
        try:
            with self._conn:
                cur = self._conn.execute(_INSERT, self._row(r))
        except (sqlite3.Error, OverflowError) as exc:
            raise StorageError(f"Unable to record log line: {exc}") from exc
        return cur.rowcount

    def record_many(self, records: Iterable[LogRecord]) -> int:
        """Append several records in one transaction."""
        rows = [self._row(r) for r in records]
        if not rows:
            return 0
        try:
            with self._conn:
                self._conn.executemany(_INSERT, rows)
        except (sqlite3.Error, OverflowError) as exc:
            raise StorageError(f"Unable to record {len(rows)} log lines: {exc}") from exc
        return len(rows)

    def _grouped(self, column: str, begin: datetime, end: datetime) -> list[tuple]:
        return self._query(
            f"SELECT {column}, COUNT(*) AS n, MIN(id) AS first_id FROM loglines "
            f"WHERE {_WINDOW} "
            f"GROUP BY {column} "
            "ORDER BY n DESC, first_id ASC",
            self._params(begin, end),
        )

    def get_status_counts(self, begin: datetime, end: datetime) -> list[StatusCount]:
        """Return (status, count) pairs for the window, most frequent first."""
        return [StatusCount(status=int(s), count=n) for s, n, _ in self._grouped("response_status", begin, end)]

    def get_section_counts(self, begin: datetime, end: datetime) -> list[SectionCount]:
        """Return (section, count) pairs for the window, most frequent first."""
        return [
            SectionCount(section=s or "", count=n)
            for s, n, _ in self._grouped("request_section", begin, end)
        ]

    def most_common_status(self, begin: datetime, end: datetime) -> int:
        """Return the most frequent status in the window."""
        counts = self.get_status_counts(begin, end)
        if not counts:
            raise NotFoundError(f"No log lines between {begin.isoformat()} and {end.isoformat()}")
        return counts[0].status

    def most_requested_section(self, begin: datetime, end: datetime) -> str:
        """Return the most frequent section in the window."""
        counts = self.get_section_counts(begin, end)
        if not counts:
            raise NotFoundError(f"No log lines between {begin.isoformat()} and {end.isoformat()}")
        return counts[0].section

    def get_records(
        self, begin: datetime, end: datetime, *, limit: int | None = None
    ) -> list[LogRecord]:
        """Return records in the window, most recently inserted first."""
        sql = (
            "SELECT remote_host, user, authuser, timestamp, request_method, "
            "request_path, response_status, response_bytes FROM loglines "
            f"WHERE {_WINDOW} ORDER BY id DESC"
        )
        params = self._params(begin, end)
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)
        return [
            LogRecord(
                host=host or "",
                user=user or "",
                auth_user=auth_user or "",
                timestamp=from_micros(ts),
                method=method or "",
                path=path or "",
                status=int(status),
                response_bytes=int(size),
            )
            for host, user, auth_user, ts, method, path, status, size in self._query(sql, params)
        ]

    def count(self, begin: datetime, end: datetime) -> int:
        """Return the number of records in the window."""
        rows = self._query(f"SELECT COUNT(*) FROM loglines WHERE {_WINDOW}", self._params(begin, end))
        return int(rows[0][0])

    def get_average_rate(self, begin: datetime, end: datetime) -> float:
        """Return records per second over the window (0.0 for an empty duration)."""
        if end < begin:
            raise ValueError("end must be >= begin")
        seconds = (end - begin).total_seconds()
        if seconds == 0:
            return 0.0
        return self.count(begin, end) / seconds
