from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

from mcp_log_monitor.core.config import MonitorConfig, resolve_monitor_config
from mcp_log_monitor.core.errors import StorageError
from mcp_log_monitor.core.monitor import LogMonitor
from mcp_log_monitor.core.snapshot import MonitorSnapshot
from mcp_log_monitor.server.log_server import configure_logging, serve


def format_alert(snapshot: MonitorSnapshot) -> str:
    alert = snapshot.alert
    if alert.firing:
        return (
            f"ALERT: average traffic exceeded {alert.threshold:g}/second "
            f"for over {alert.interval_seconds} seconds ({alert.average_rate:.2f}/s)"
        )
    if alert.recovering:
        return f"recovered at {snapshot.generated_at:%H:%M:%S}"
    return "ok"


def format_snapshot(snapshot: MonitorSnapshot) -> str:
    """Render a snapshot as a single status line."""
    top_section = f"/{snapshot.section_counts[0].label}" if snapshot.section_counts else "-"
    top_status = snapshot.status_counts[0].label if snapshot.status_counts else "-"
    hits = sum(snapshot.traffic)
    histogram = " ".join(str(n) for n in snapshot.traffic)
    return (
        f"[{snapshot.begin:%H:%M:%S}-{snapshot.end:%H:%M:%S}] "
        f"hits={hits} top_section={top_section} top_status={top_status} "
        f"traffic=[{histogram}] alert={format_alert(snapshot)}"
    )


def _apply_args(cfg: MonitorConfig, args: argparse.Namespace) -> MonitorConfig:
    overrides = {}
    if args.log_path:
        overrides["log_path"] = Path(args.log_path).expanduser()
    if args.db_path:
        overrides["db_path"] = Path(args.db_path).expanduser()
    if args.debug_log_path:
        overrides["debug_log_path"] = Path(args.debug_log_path).expanduser()
    for name in ("alert_threshold", "alert_interval_seconds", "timescale_minutes", "granularity"):
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value
    return replace(cfg, **overrides).validate() if overrides else cfg


def watch(config: MonitorConfig) -> int:
    """Print one status line per tick until interrupted."""
    monitor = LogMonitor.open(config)
    try:
        monitor.start()
    except (OSError, StorageError) as e:
        print(f"Error opening log file: {e}", file=sys.stderr)
        monitor.close()
        return 2

    status = 0
    try:
        monitor.run(on_snapshot=lambda s: print(format_snapshot(s), flush=True))
    except KeyboardInterrupt:
        pass
    finally:
        try:
            monitor.stop()
        except StorageError as e:
            print(f"Offset not saved, lines may be re-read on restart: {e}", file=sys.stderr)
            status = 1
        monitor.close()
    return status


def main(argv: Sequence[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Monitor a growing HTTP access log.")
    p.add_argument("command", nargs="?", choices=["watch", "serve"], default="serve")
    p.add_argument("log_path", nargs="?", default=None, help="Log file to monitor")
    p.add_argument("--db-path", default=None, help="SQLite database for offsets and records")
    p.add_argument("--debug-log-path", default=None, help="Write diagnostics to this file instead of stderr")
    p.add_argument(
        "--alert-threshold",
        type=float,
        default=None,
        help="Average requests per second over the alert interval that triggers an alert",
    )
    p.add_argument(
        "--alert-interval",
        dest="alert_interval_seconds",
        type=int,
        default=None,
        help="Seconds the average is taken over",
    )
    p.add_argument("--timescale", dest="timescale_minutes", type=int, default=None, help="Window in minutes")
    p.add_argument("--granularity", type=int, default=None, help="Number of traffic buckets")

    args = p.parse_args(argv)

    try:
        config = _apply_args(resolve_monitor_config(), args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)
    configure_logging(config.debug_log_path)

    if args.command == "watch":
        raise SystemExit(watch(config))
    raise SystemExit(serve(config))


if __name__ == "__main__":
    main()
