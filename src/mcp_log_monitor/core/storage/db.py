"""Database bootstrap."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from ..errors import StorageError

CREATE_OFFSETS_TABLE = """
CREATE TABLE IF NOT EXISTS offsets (
  filename TEXT PRIMARY KEY,
  offset INTEGER NOT NULL
)
"""

CREATE_LOGLINES_TABLE = """
CREATE TABLE IF NOT EXISTS loglines (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  remote_host TEXT,
  user TEXT,
  authuser TEXT,
  timestamp INTEGER,
  request_method TEXT,
  request_section TEXT,
  request_path TEXT,
  response_status INTEGER,
  response_bytes INTEGER,
  log_file TEXT
)
"""

CREATE_LOGLINES_INDEX = """
CREATE INDEX IF NOT EXISTS loglines_file_ts ON loglines (log_file, timestamp)
"""


def connect(db_path: str | Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open the monitor database, creating parent directories and schema."""
    path = str(db_path)
    try:
        if path != ":memory:":
            Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path, check_same_thread=check_same_thread, timeout=5.0)
        if path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")
        init_schema(conn)
    except (OSError, sqlite3.Error) as exc:
        raise StorageError(f"Unable to open database {path}: {exc}") from exc
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Create the offsets and loglines tables if missing."""
    with conn:
        conn.execute(CREATE_OFFSETS_TABLE)
        conn.execute(CREATE_LOGLINES_TABLE)
        conn.execute(CREATE_LOGLINES_INDEX)
