"""Monitor configuration and environment overrides."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path

from .alerting import DEFAULT_RECOVERY_COUNTDOWN

ENV_PREFIX = "LOG_MONITOR_"


def default_log_path() -> Path:
    return Path(tempfile.gettempdir()) / "access.log"


def default_db_path() -> Path:
    return Path.home() / ".local" / "share" / "mcp-log-monitor" / "monitor.sqlite"


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    log_path: Path = default_log_path()
    db_path: Path = default_db_path()
    # Diagnostics go here instead of stderr when set.
    debug_log_path: Path | None = None

    # Sliding display window and histogram resolution.
    timescale_minutes: int = 5
    granularity: int = 10

    # Average requests/second over the interval that triggers the alert.
    alert_threshold: float = 10.0
    alert_interval_seconds: int = 120
    recovery_countdown: int = DEFAULT_RECOVERY_COUNTDOWN

    tick_seconds: float = 1.0
    queue_size: int = 24
    poll_interval: float = 0.1

    def validate(self) -> MonitorConfig:
        """Raise ValueError for out-of-range settings; return self."""
        if self.timescale_minutes < 1:
            raise ValueError("timescale_minutes must be >= 1")
        if self.granularity < 1:
            raise ValueError("granularity must be >= 1")
        if self.alert_threshold < 0:
            raise ValueError("alert_threshold must be >= 0")
        if self.alert_interval_seconds < 1:
            raise ValueError("alert_interval_seconds must be >= 1")
        if self.recovery_countdown < 0:
            raise ValueError("recovery_countdown must be >= 0")
        if self.tick_seconds <= 0:
            raise ValueError("tick_seconds must be > 0")
        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        return self


def _env_int(name: str) -> int | None:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer") from exc


def _env_float(name: str) -> float | None:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number") from exc


def _env_path(name: str) -> Path | None:
    raw = os.getenv(ENV_PREFIX + name)
    if not raw:
        return None
    return Path(raw).expanduser()


def resolve_monitor_config(cfg: MonitorConfig | None = None) -> MonitorConfig:
    """Return config with LOG_MONITOR_* environment overrides applied."""
    if cfg is None:
        cfg = MonitorConfig()

    overrides: dict[str, object] = {}
    for field_name, env_name in (
        ("log_path", "LOG_PATH"),
        ("db_path", "DB_PATH"),
        ("debug_log_path", "DEBUG_LOG_PATH"),
    ):
        value = _env_path(env_name)
        if value is not None:
            overrides[field_name] = value
    for field_name, env_name in (
        ("timescale_minutes", "TIMESCALE_MINUTES"),
        ("granularity", "GRANULARITY"),
        ("alert_interval_seconds", "ALERT_INTERVAL"),
        ("recovery_countdown", "RECOVERY_COUNTDOWN"),
        ("queue_size", "QUEUE_SIZE"),
    ):
        value = _env_int(env_name)
        if value is not None:
            overrides[field_name] = value
    for field_name, env_name in (
        ("alert_threshold", "ALERT_THRESHOLD"),
        ("tick_seconds", "TICK_SECONDS"),
        ("poll_interval", "POLL_INTERVAL"),
    ):
        value = _env_float(env_name)
        if value is not None:
            overrides[field_name] = value

    if overrides:
        cfg = replace(cfg, **overrides)
    return cfg.validate()
