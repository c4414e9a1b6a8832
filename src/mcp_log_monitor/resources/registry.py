"""MCP resource registry.

Resources are addressable by URI and can be fetched by the MCP client on demand.
"""

from __future__ import annotations

from collections import deque
from pathlib import Path
from typing import Any

import aiofiles
from mcp.server.fastmcp import FastMCP

from mcp_log_monitor.core.config import MonitorConfig
from mcp_log_monitor.core.snapshot import MonitorSnapshot

TAIL_LINES = 200
TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "replace"


async def read_tail(path: Path, lines: int = TAIL_LINES) -> str:
    """Return the last ``lines`` lines of a text file."""
    if lines <= 0:
        raise ValueError("lines must be > 0")
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    tail: deque[str] = deque(maxlen=lines)
    async with aiofiles.open(path, encoding=TEXT_ENCODING, errors=TEXT_ERRORS) as f:
        async for line in f:
            tail.append(line)
    return "".join(tail)


def config_to_dict(config: MonitorConfig) -> dict[str, Any]:
    """Return the monitor configuration as JSON-serializable data."""
    return {
        "log_path": str(config.log_path),
        "db_path": str(config.db_path),
        "debug_log_path": str(config.debug_log_path) if config.debug_log_path else None,
        "timescale_minutes": config.timescale_minutes,
        "granularity": config.granularity,
        "alert_threshold": config.alert_threshold,
        "alert_interval_seconds": config.alert_interval_seconds,
        "recovery_countdown": config.recovery_countdown,
        "tick_seconds": config.tick_seconds,
        "queue_size": config.queue_size,
        "poll_interval": config.poll_interval,
    }


def register_resources(mcp: FastMCP, config: MonitorConfig) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://log-monitor/help")
    def help_resource() -> str:
        """Return a short list of available resource URIs."""
        return (
            "Resources:\n"
            "- app://log-monitor/help\n"
            "- app://log-monitor/config\n"
            "- app://log-monitor/schemas/snapshot\n"
            f"- log://tail (last {TAIL_LINES} lines of the monitored log)\n"
            f"\nMonitored file: {config.log_path}\n"
        )

    @mcp.resource("app://log-monitor/config")
    def config_resource() -> dict[str, Any]:
        """Return the active monitor configuration."""
        return config_to_dict(config)

    @mcp.resource("app://log-monitor/schemas/snapshot")
    def snapshot_schema() -> dict[str, Any]:
        """Return the JSON schema for traffic snapshots."""
        return MonitorSnapshot.model_json_schema()

    @mcp.resource("log://tail")
    async def tail_log() -> str:
        """Return the most recent lines of the monitored log."""
        return await read_tail(config.log_path.expanduser())
