"""Exception types raised by the monitor core."""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for monitor failures."""


class ParseError(MonitorError, ValueError):
    """A line does not match the access-log grammar and must be skipped."""

    def __init__(self, message: str, *, line: str | None = None) -> None:
        super().__init__(message)
        self.line = line


class StorageError(MonitorError):
    """Reading or writing persisted state failed."""


class NotFoundError(MonitorError, LookupError):
    """An aggregation query matched no rows."""
