"""Durable per-file offsets."""

from __future__ import annotations

import sqlite3
import threading

from ..errors import StorageError


class OffsetStore:
    """Remember how many lines of each file have been consumed.

    Safe to share between threads; open the connection with
    ``check_same_thread=False`` when doing so.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    def persist(self, filename: str, offset: int) -> None:
        """Upsert the offset for a file (last write wins)."""
        if offset < 0:
            raise ValueError("offset must be >= 0")
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT INTO offsets (filename, offset) VALUES (?, ?) "
                    "ON CONFLICT(filename) DO UPDATE SET offset = excluded.offset",
                    (filename, offset),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Unable to persist offset for {filename}: {exc}") from exc

    def get(self, filename: str) -> int:
        """Return the stored offset for a file, or 0 if none was persisted."""
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT offset FROM offsets WHERE filename = ?", (filename,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Unable to read offset for {filename}: {exc}") from exc
        if row is None:
            return 0
        return int(row[0])
