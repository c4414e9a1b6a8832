from __future__ import annotations

from pathlib import Path

import pytest

from mcp_log_monitor.core.config import MonitorConfig
from mcp_log_monitor.resources.registry import config_to_dict, read_tail


@pytest.mark.asyncio
async def test_read_tail_returns_last_lines(tmp_path: Path, write_lines) -> None:
    log = tmp_path / "access.log"
    write_lines(log, [f"line {i}" for i in range(10)])

    out = await read_tail(log, lines=3)

    assert out == "line 7\nline 8\nline 9\n"


@pytest.mark.asyncio
async def test_read_tail_short_file(tmp_path: Path, write_lines) -> None:
    log = tmp_path / "access.log"
    write_lines(log, ["only"])
    assert await read_tail(log) == "only\n"


@pytest.mark.asyncio
async def test_read_tail_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        await read_tail(tmp_path / "missing.log")


@pytest.mark.asyncio
async def test_read_tail_rejects_bad_count(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        await read_tail(tmp_path / "access.log", lines=0)


def test_config_to_dict_is_json_friendly(tmp_path: Path) -> None:
    cfg = MonitorConfig(log_path=tmp_path / "a.log", db_path=tmp_path / "db.sqlite", alert_threshold=2.0)
    out = config_to_dict(cfg)
    assert out["log_path"] == str(tmp_path / "a.log")
    assert out["alert_threshold"] == 2.0
    assert out["granularity"] == 10
