"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: traffic snapshot and windowed breakdown queries
- Resources: configuration, snapshot schema and the monitored log tail
- Prompts: reusable conversation templates that clients can invoke

The monitor loop runs on a background thread for the lifetime of the server
and is stopped (offset flushed) when the server exits.

Run locally (stdio):
    python -m mcp_log_monitor serve
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_log_monitor.core.config import MonitorConfig, resolve_monitor_config
from mcp_log_monitor.core.errors import StorageError
from mcp_log_monitor.core.monitor import LogMonitor
from mcp_log_monitor.core.storage import TimeSeriesStore, connect
from mcp_log_monitor.prompts.registry import register_prompts
from mcp_log_monitor.resources.registry import register_resources
from mcp_log_monitor.tools.monitor import (
    average_rate_impl,
    recent_requests_impl,
    section_counts_impl,
    status_counts_impl,
    traffic_snapshot_impl,
)

LOGGER = logging.getLogger(__name__)


def configure_logging(debug_log_path: Path | None = None) -> None:
    """Configure a reasonable default logging setup.

    Logs go to ``debug_log_path`` when given, otherwise to stderr; stdout
    carries the MCP stdio transport or the watch output.
    """
    level_name = os.getenv("LOG_MONITOR_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    handler: logging.Handler
    if debug_log_path is not None:
        debug_log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(debug_log_path, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[handler],
    )


def build_server(monitor: LogMonitor, query_store: TimeSeriesStore) -> FastMCP:
    """Create the FastMCP app for a running monitor.

    ``query_store`` must use its own connection; the monitor's store belongs to
    the monitor thread.
    """
    mcp = FastMCP("log-monitor", json_response=True)
    query_lock = threading.Lock()

    register_resources(mcp, monitor.config)
    register_prompts(mcp)

    @mcp.tool()
    def traffic_snapshot() -> dict[str, Any]:
        """Return the latest per-tick snapshot.

        Includes section and status breakdowns for the display window, the
        traffic histogram (requests per bucket) and the alert state.
        """
        return traffic_snapshot_impl(monitor)

    @mcp.tool()
    def status_counts(
        since: str | None = None,
        until: str | None = None,
        date: str | None = None,
        hour: str | None = None,
        minutes_lookback: int | None = None,
    ) -> dict[str, Any]:
        """Count requests per HTTP status in a time window, most frequent first.

        Parameters
        ----------
        since/until:
            ISO-8601 datetimes (inclusive). If timezone is omitted, UTC is assumed.
        date/hour:
            Convenience selectors, e.g. 2018-05-09 or 2018-05-09T16.
        minutes_lookback:
            Window of the last N minutes. Default is the last 5 minutes.
        """
        with query_lock:
            return status_counts_impl(
                query_store,
                since=since,
                until=until,
                date=date,
                hour=hour,
                minutes_lookback=minutes_lookback,
            )

    @mcp.tool()
    def section_counts(
        since: str | None = None,
        until: str | None = None,
        date: str | None = None,
        hour: str | None = None,
        minutes_lookback: int | None = None,
    ) -> dict[str, Any]:
        """Count requests per site section (first path segment), most frequent first.

        Takes the same window parameters as status_counts.
        """
        with query_lock:
            return section_counts_impl(
                query_store,
                since=since,
                until=until,
                date=date,
                hour=hour,
                minutes_lookback=minutes_lookback,
            )

    @mcp.tool()
    def recent_requests(
        limit: int | None = None,
        since: str | None = None,
        until: str | None = None,
        date: str | None = None,
        hour: str | None = None,
        minutes_lookback: int | None = None,
    ) -> dict[str, Any]:
        """Return parsed requests in a time window, newest first (hard-capped)."""
        with query_lock:
            return recent_requests_impl(
                query_store,
                limit=limit,
                since=since,
                until=until,
                date=date,
                hour=hour,
                minutes_lookback=minutes_lookback,
            )

    @mcp.tool()
    def average_rate(
        since: str | None = None,
        until: str | None = None,
        minutes_lookback: int | None = None,
    ) -> dict[str, Any]:
        """Return the average number of requests per second in a time window."""
        with query_lock:
            return average_rate_impl(
                query_store,
                since=since,
                until=until,
                minutes_lookback=minutes_lookback,
            )

    return mcp


def serve(config: MonitorConfig) -> int:
    """Run the monitor and the MCP server until the client disconnects."""
    monitor = LogMonitor.open(config)
    try:
        monitor.start()
    except (OSError, StorageError) as exc:
        LOGGER.error("Unable to start monitoring %s: %s", config.log_path, exc)
        monitor.close()
        return 2

    query_conn = connect(config.db_path, check_same_thread=False)
    query_store = TimeSeriesStore(query_conn, monitor.store.log_file)
    loop = threading.Thread(target=monitor.run, name="monitor", daemon=True)
    loop.start()

    status = 0
    try:
        LOGGER.debug("Starting MCP server (transport=stdio)")
        build_server(monitor, query_store).run(transport="stdio")
    finally:
        try:
            monitor.stop()
        except StorageError as exc:
            LOGGER.error("Offset not saved, lines may be re-read on restart: %s", exc)
            status = 1
        loop.join(timeout=5.0)
        query_conn.close()
        monitor.close()
    return status


def main() -> None:
    """Start the MCP server over stdio using environment configuration."""
    try:
        config = resolve_monitor_config()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)
    configure_logging(config.debug_log_path)
    raise SystemExit(serve(config))


if __name__ == "__main__":
    main()
