"""Coordination loop: drain tailed records into the store and tick the pipeline.

Two threads are involved. The tailer thread produces records into a bounded
queue; the thread calling :meth:`LogMonitor.run` is the only one writing to the
time-series store and the only one advancing the alert state.
"""

from __future__ import annotations

import logging
import queue
import sqlite3
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from .alerting import AlertEvaluator
from .bucketing import bucket, traffic
from .config import MonitorConfig
from .errors import StorageError
from .models import LogRecord
from .snapshot import AlertSnapshot, MonitorSnapshot, section_items, status_items
from .storage import OffsetStore, TimeSeriesStore, connect
from .tailer import Tailer

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LogMonitor:
    """Own the store, the alert state and the sliding window for one log file."""

    def __init__(
        self,
        config: MonitorConfig,
        *,
        offsets: OffsetStore,
        store: TimeSeriesStore,
        tailer: Tailer | None = None,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config.validate()
        self.store = store
        self.offsets = offsets
        self._log = logger or LOGGER
        self.tailer = tailer or Tailer(
            config.log_path,
            offsets,
            poll_interval=config.poll_interval,
            logger=self._log,
        )
        self.records: queue.Queue[LogRecord] = queue.Queue(maxsize=config.queue_size)
        self.alerts = AlertEvaluator(
            config.alert_threshold,
            config.alert_interval_seconds,
            config.recovery_countdown,
        )
        self._clock = clock or _utcnow
        self.begin: datetime | None = None

        self._stop = threading.Event()
        self._done = threading.Event()
        self._running_in: threading.Thread | None = None
        self._snapshot_lock = threading.Lock()
        self._latest: MonitorSnapshot | None = None
        self._connections: list[sqlite3.Connection] = []
        self._reported_error: BaseException | None = None

    @classmethod
    def open(
        cls,
        config: MonitorConfig,
        *,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> LogMonitor:
        """Build a monitor backed by the SQLite database in ``config.db_path``."""
        # Offsets are written from the tailer thread, records from the loop thread.
        offsets_conn = connect(config.db_path, check_same_thread=False)
        store_conn = connect(config.db_path, check_same_thread=False)
        log_file = str(config.log_path.expanduser().resolve())
        monitor = cls(
            config,
            offsets=OffsetStore(offsets_conn),
            store=TimeSeriesStore(store_conn, log_file),
            clock=clock,
            logger=logger,
        )
        monitor._connections = [offsets_conn, store_conn]
        return monitor

    @property
    def timescale(self) -> timedelta:
        return timedelta(minutes=self.config.timescale_minutes)

    @property
    def latest_snapshot(self) -> MonitorSnapshot | None:
        with self._snapshot_lock:
            return self._latest

    def start(self) -> None:
        """Start tailing. Raises OSError/StorageError if the tailer cannot start."""
        self.tailer.start(self.records)

    def window(self, now: datetime) -> tuple[datetime, datetime]:
        """Return the display window, restarting it at ``now`` once it has passed."""
        if self.begin is None or self.begin + self.timescale < now:
            self.begin = now
        return self.begin, self.begin + self.timescale

    def drain(self, timeout: float = 0.0) -> int:
        """Move queued records into the store; wait up to ``timeout`` for the first."""
        batch: list[LogRecord] = []
        try:
            if timeout > 0:
                batch.append(self.records.get(timeout=timeout))
            while True:
                batch.append(self.records.get_nowait())
        except queue.Empty:
            pass
        if not batch:
            return 0
        try:
            return self.store.record_many(batch)
        except StorageError as exc:
            if len(batch) == 1:
                self._log.error("Error writing log line to the database: %s", exc)
                return 0
            self._log.warning("Batch of %d log lines failed, writing one by one: %s", len(batch), exc)

        # Isolate the failing rows so the rest of the batch is kept.
        written = 0
        for record in batch:
            try:
                written += self.store.record(record)
            except StorageError as exc:
                self._log.error("Dropping log line at %s: %s", record.timestamp.isoformat(), exc)
        return written

    def tick(self, now: datetime | None = None) -> MonitorSnapshot:
        """Recompute breakdowns, traffic and alert state for ``now``."""
        now = now or self._clock()
        begin, end = self.window(now)
        cfg = self.config

        sections = self.store.get_section_counts(begin, end)
        statuses = self.store.get_status_counts(begin, end)
        # Buckets are half-open; a record exactly at `end` is outside them.
        in_window = [r for r in self.store.get_records(begin, end) if r.timestamp < end]
        buckets = bucket(begin, end, cfg.granularity, in_window)

        alert_begin, alert_end = self.alerts.window(now)
        avg = self.store.get_average_rate(alert_begin, alert_end)
        state = self.alerts.evaluate(avg)

        snapshot = MonitorSnapshot(
            log_file=self.store.log_file,
            begin=begin,
            end=end,
            generated_at=now,
            granularity=cfg.granularity,
            bucket_seconds=(end - begin).total_seconds() / cfg.granularity,
            section_counts=section_items(sections),
            status_counts=status_items(statuses),
            traffic=traffic(buckets),
            alert=AlertSnapshot.from_state(
                state,
                threshold=cfg.alert_threshold,
                interval_seconds=cfg.alert_interval_seconds,
                average_rate=avg,
            ),
        )
        with self._snapshot_lock:
            self._latest = snapshot
        return snapshot

    def _check_tailer(self) -> None:
        err = self.tailer.error
        if err is not None and err is not self._reported_error:
            self._reported_error = err
            self._log.error("Tailer for %s stopped: %s", self.tailer.filename, err)

    def run(self, on_snapshot: Callable[[MonitorSnapshot], None] | None = None) -> None:
        """Drain and tick on a wall-clock schedule until :meth:`stop` is called."""
        if not self.tailer.is_running and self.tailer.error is None:
            self.start()
        self._running_in = threading.current_thread()
        self._done.clear()
        next_tick = time.monotonic()
        try:
            while not self._stop.is_set():
                remaining = next_tick - time.monotonic()
                if remaining > 0:
                    self.drain(timeout=remaining)
                    continue

                next_tick += self.config.tick_seconds
                self._check_tailer()
                try:
                    snapshot = self.tick()
                except (StorageError, ValueError):
                    self._log.exception("Error updating monitor state")
                    continue
                if on_snapshot is not None:
                    on_snapshot(snapshot)
        finally:
            self.drain()
            self._done.set()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Terminate the tailer, flush its offset and store any queued records.

        Raises StorageError if the final offset could not be persisted; resuming
        may then repeat lines.
        """
        persist_error: StorageError | None = None
        try:
            self.tailer.terminate(timeout)
        except StorageError as exc:
            persist_error = exc
        self._stop.set()

        loop = self._running_in
        if loop is not None and loop is not threading.current_thread() and loop.is_alive():
            self._done.wait(timeout)
        else:
            self.drain()

        if persist_error is not None:
            raise persist_error

    def close(self) -> None:
        """Close database connections opened by :meth:`open`."""
        for conn in self._connections:
            conn.close()
        self._connections = []
