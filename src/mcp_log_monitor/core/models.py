"""Core data models for log monitoring."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

# Value used when a line's timestamp cannot be converted.
ZERO_TIME = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class LogRecord:
    """One parsed access-log line."""

    host: str = ""
    user: str = ""
    auth_user: str = ""
    timestamp: datetime = ZERO_TIME
    method: str = ""
    path: str = ""
    status: int = 0
    response_bytes: int = 0


@dataclass(frozen=True, slots=True)
class StatusCount:
    """Number of records with a given response status."""

    status: int
    count: int


@dataclass(frozen=True, slots=True)
class SectionCount:
    """Number of records hitting a given path section."""

    section: str
    count: int


@dataclass(frozen=True, slots=True)
class TimeBucket:
    """Records whose timestamp falls in [start, end)."""

    start: datetime
    end: datetime
    records: Sequence[LogRecord] = ()

    def __len__(self) -> int:
        return len(self.records)


def extract_section(path: str) -> str:
    """Return the first path segment, e.g. "/api/user" -> "api"."""
    parts = path.split("/")
    if len(parts) > 1:
        return parts[1]
    return parts[0]
