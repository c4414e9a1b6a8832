"""MCP tool implementations.

This module contains the *implementation* behind the exposed MCP tools.
Keep this layer thin: validate inputs, translate them into core calls, and
return JSON-serializable data structures.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from mcp_log_monitor.core.errors import NotFoundError
from mcp_log_monitor.core.models import LogRecord
from mcp_log_monitor.core.monitor import LogMonitor
from mcp_log_monitor.core.storage import TimeSeriesStore
from mcp_log_monitor.core.time_window import resolve_time_window

DEFAULT_LIMIT = 50
HARD_LIMIT = 1000


def _window(
    *,
    since: str | None,
    until: str | None,
    date: str | None,
    hour: str | None,
    minutes_lookback: int | None,
    now: datetime | None,
) -> tuple[datetime, datetime]:
    return resolve_time_window(
        since=since,
        until=until,
        date_=date,
        hour=hour,
        minutes_lookback=minutes_lookback,
        now=now,
    )


def _record_to_dict(r: LogRecord) -> dict[str, Any]:
    """Convert a LogRecord into a JSON-serializable dict."""
    return {
        "timestamp": r.timestamp.isoformat(),
        "host": r.host,
        "user": r.user,
        "auth_user": r.auth_user,
        "method": r.method,
        "path": r.path,
        "status": r.status,
        "response_bytes": r.response_bytes,
    }


def traffic_snapshot_impl(monitor: LogMonitor) -> dict[str, Any]:
    """Return the snapshot produced by the monitor's most recent tick."""
    snapshot = monitor.latest_snapshot
    if snapshot is None:
        return {"ready": False, "snapshot": None}
    return {"ready": True, "snapshot": snapshot.model_dump(mode="json")}


def status_counts_impl(
    store: TimeSeriesStore,
    *,
    since: str | None = None,
    until: str | None = None,
    date: str | None = None,
    hour: str | None = None,
    minutes_lookback: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Implementation for the `status_counts` MCP tool."""
    begin, end = _window(
        since=since, until=until, date=date, hour=hour, minutes_lookback=minutes_lookback, now=now
    )
    counts = store.get_status_counts(begin, end)
    try:
        most_common: int | None = store.most_common_status(begin, end)
    except NotFoundError:
        most_common = None
    return {
        "begin": begin.isoformat(),
        "end": end.isoformat(),
        "most_common": most_common,
        "counts": [{"status": c.status, "count": c.count} for c in counts],
    }


def section_counts_impl(
    store: TimeSeriesStore,
    *,
    since: str | None = None,
    until: str | None = None,
    date: str | None = None,
    hour: str | None = None,
    minutes_lookback: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Implementation for the `section_counts` MCP tool."""
    begin, end = _window(
        since=since, until=until, date=date, hour=hour, minutes_lookback=minutes_lookback, now=now
    )
    counts = store.get_section_counts(begin, end)
    try:
        most_requested: str | None = store.most_requested_section(begin, end)
    except NotFoundError:
        most_requested = None
    return {
        "begin": begin.isoformat(),
        "end": end.isoformat(),
        "most_requested": most_requested,
        "counts": [{"section": c.section, "count": c.count} for c in counts],
    }


def recent_requests_impl(
    store: TimeSeriesStore,
    *,
    limit: int | None = None,
    since: str | None = None,
    until: str | None = None,
    date: str | None = None,
    hour: str | None = None,
    minutes_lookback: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Implementation for the `recent_requests` MCP tool (newest first)."""
    if limit is None:
        limit = DEFAULT_LIMIT
    if limit <= 0:
        raise ValueError("limit must be > 0")
    if limit > HARD_LIMIT:
        limit = HARD_LIMIT

    begin, end = _window(
        since=since, until=until, date=date, hour=hour, minutes_lookback=minutes_lookback, now=now
    )
    records = store.get_records(begin, end, limit=limit)
    return {
        "begin": begin.isoformat(),
        "end": end.isoformat(),
        "count": len(records),
        "requests": [_record_to_dict(r) for r in records],
    }


def average_rate_impl(
    store: TimeSeriesStore,
    *,
    since: str | None = None,
    until: str | None = None,
    minutes_lookback: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Implementation for the `average_rate` MCP tool."""
    begin, end = _window(
        since=since, until=until, date=None, hour=None, minutes_lookback=minutes_lookback, now=now
    )
    return {
        "begin": begin.isoformat(),
        "end": end.isoformat(),
        "count": store.count(begin, end),
        "requests_per_second": store.get_average_rate(begin, end),
    }
