from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from mcp_log_monitor.cli import format_snapshot
from mcp_log_monitor.core.snapshot import AlertSnapshot, CountItem, MonitorSnapshot
from mcp_log_monitor.server import log_server

BEGIN = datetime(2018, 5, 9, 18, 0, 0, tzinfo=UTC)


def _snapshot(*, firing: bool = False, recovering: bool = False, **kwargs) -> MonitorSnapshot:
    fields = {
        "log_file": "/var/log/access.log",
        "begin": BEGIN,
        "end": BEGIN + timedelta(minutes=5),
        "generated_at": BEGIN + timedelta(minutes=3, seconds=1),
        "granularity": 5,
        "bucket_seconds": 60.0,
        "traffic": [0, 0, 0, 2, 0],
        "alert": AlertSnapshot(
            firing=firing,
            recovering=recovering,
            recovery_countdown=3 if recovering else 0,
            threshold=1.0,
            interval_seconds=120,
            average_rate=2.0,
        ),
    }
    fields.update(kwargs)
    return MonitorSnapshot(**fields)


def test_format_snapshot_quiet() -> None:
    line = format_snapshot(
        _snapshot(
            section_counts=[CountItem(label="report", count=2)],
            status_counts=[CountItem(label="200", count=2)],
        )
    )
    assert line == (
        "[18:00:00-18:05:00] hits=2 top_section=/report top_status=200 traffic=[0 0 0 2 0] alert=ok"
    )


def test_format_snapshot_empty_breakdowns() -> None:
    line = format_snapshot(_snapshot(traffic=[0, 0, 0, 0, 0]))
    assert "hits=0 top_section=- top_status=-" in line


def test_format_snapshot_alerts() -> None:
    firing = format_snapshot(_snapshot(firing=True))
    assert "ALERT: average traffic exceeded 1/second for over 120 seconds (2.00/s)" in firing

    recovered = format_snapshot(_snapshot(recovering=True))
    assert recovered.endswith("alert=recovered at 18:03:01")


def test_configure_logging_writes_to_debug_log(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    seen: dict[str, Any] = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: seen.update(kwargs))
    debug_log = tmp_path / "logs" / "debug.log"

    log_server.configure_logging(debug_log)

    [handler] = seen["handlers"]
    try:
        assert isinstance(handler, logging.FileHandler)
        assert Path(handler.baseFilename) == debug_log
    finally:
        handler.close()


def test_configure_logging_defaults_to_stderr(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, Any] = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: seen.update(kwargs))
    monkeypatch.setenv("LOG_MONITOR_LOG_LEVEL", "debug")

    log_server.configure_logging()

    [handler] = seen["handlers"]
    assert type(handler) is logging.StreamHandler
    assert seen["level"] == logging.DEBUG
