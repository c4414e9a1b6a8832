"""SQLite persistence for offsets and log records."""

from __future__ import annotations

from .db import connect, init_schema
from .offsets import OffsetStore
from .timeseries import TimeSeriesStore

__all__ = [
    "OffsetStore",
    "TimeSeriesStore",
    "connect",
    "init_schema",
]
