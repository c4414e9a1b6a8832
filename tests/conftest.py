from __future__ import annotations

import queue
import sqlite3
import time
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from mcp_log_monitor.core.errors import StorageError
from mcp_log_monitor.core.models import LogRecord
from mcp_log_monitor.core.storage import OffsetStore, TimeSeriesStore, connect


@pytest.fixture
def access_line() -> Callable[..., str]:
    def _line(
        path: str = "/report",
        *,
        status: int = 200,
        ts: str = "09/May/2018:16:00:39 +0000",
        host: str = "127.0.0.1",
    ) -> str:
        return f'{host} - james [{ts}] "GET {path} HTTP/1.0" {status} 123'

    return _line


@pytest.fixture
def make_record() -> Callable[..., LogRecord]:
    def _make(
        timestamp: datetime = datetime(2018, 5, 9, 16, 0, 0, tzinfo=UTC),
        *,
        path: str = "/report",
        status: int = 200,
        host: str = "127.0.0.1",
    ) -> LogRecord:
        return LogRecord(
            host=host,
            user="-",
            auth_user="james",
            timestamp=timestamp,
            method="GET",
            path=path,
            status=status,
            response_bytes=123,
        )

    return _make


@pytest.fixture
def db(tmp_path: Path) -> Iterator[sqlite3.Connection]:
    conn = connect(tmp_path / "monitor.sqlite", check_same_thread=False)
    yield conn
    conn.close()


@pytest.fixture
def offsets(db: sqlite3.Connection) -> OffsetStore:
    return OffsetStore(db)


@pytest.fixture
def store() -> Iterator[TimeSeriesStore]:
    conn = connect(":memory:")
    yield TimeSeriesStore(conn, "logfile.log")
    conn.close()


@pytest.fixture
def write_lines() -> Callable[[Path, list[str]], None]:
    def _write(path: Path, lines: list[str]) -> None:
        with path.open("a", encoding="utf-8") as f:
            f.write("".join(line + "\n" for line in lines))

    return _write


@pytest.fixture
def get_record() -> Callable[..., LogRecord]:
    def _get(q: queue.Queue[LogRecord], timeout: float = 2.0) -> LogRecord:
        try:
            return q.get(timeout=timeout)
        except queue.Empty:
            pytest.fail(f"Did not receive log line after {timeout} seconds")

    return _get


@pytest.fixture
def wait_until() -> Callable[..., None]:
    def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return
            time.sleep(0.01)
        pytest.fail(f"Condition not met within {timeout} seconds")

    return _wait


class FailingOffsets:
    """Offset store whose writes always fail."""

    def get(self, filename: str) -> int:
        return 0

    def persist(self, filename: str, offset: int) -> None:
        raise StorageError("disk full")


@pytest.fixture
def failing_offsets() -> FailingOffsets:
    return FailingOffsets()
