"""Follow a growing log file from its last persisted position.

The tailer reads newline-terminated lines on a background thread, parses them
and hands records to the caller through a bounded queue. The offset is the
number of lines consumed (parsed or not) and is persisted after every
checkpoint and on termination, so a restarted tailer resumes at the next
unconsumed line.
"""

from __future__ import annotations

import logging
import queue
import threading
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from .errors import StorageError
from .models import LogRecord
from .parser import AccessLogParser
from .storage.offsets import OffsetStore

LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1


class TailerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    TERMINATED = "terminated"


class Tailer:
    """Tail one log file into a queue of LogRecords."""

    def __init__(
        self,
        path: str | Path,
        offsets: OffsetStore,
        *,
        parser: AccessLogParser | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        checkpoint_every: int = 1,
        logger: logging.Logger | None = None,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        if checkpoint_every < 1:
            raise ValueError("checkpoint_every must be >= 1")
        self.path = Path(path).expanduser()
        self.filename = str(self.path.resolve())
        self.poll_interval = poll_interval
        self.checkpoint_every = checkpoint_every
        self._offsets = offsets
        self._log = logger or LOGGER
        self._parser = parser or AccessLogParser(log=self._log)

        # Guards _offset and _state; held while persisting so writes stay ordered.
        self._lock = threading.Lock()
        self._offset = 0
        self._state = TailerState.IDLE
        self._error: BaseException | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> TailerState:
        with self._lock:
            return self._state

    @property
    def offset(self) -> int:
        with self._lock:
            return self._offset

    @property
    def error(self) -> BaseException | None:
        """The failure that ended the last session, if any."""
        return self._error

    @property
    def is_running(self) -> bool:
        return self.state is TailerState.RUNNING

    def start(self, records: queue.Queue[LogRecord]) -> None:
        """Open the file, restore the offset and start the read loop.

        Raises OSError if the file cannot be opened and StorageError if the
        offset cannot be read.
        """
        with self._lock:
            if self._state is TailerState.RUNNING:
                raise RuntimeError(f"Tailer for {self.filename} is already running")
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError(f"Previous read loop for {self.filename} has not stopped yet")

        f = self.path.open("rb")
        try:
            offset = self._offsets.get(self.filename)
        except StorageError:
            f.close()
            raise

        stop = threading.Event()
        with self._lock:
            self._offset = offset
            self._error = None
            self._stop = stop
            self._state = TailerState.RUNNING

        self._log.info("Tailing %s from line %d", self.filename, offset)
        self._thread = threading.Thread(
            target=self._run,
            args=(f, records, offset, stop),
            name=f"tailer:{self.path.name}",
            daemon=True,
        )
        self._thread.start()

    def terminate(self, timeout: float | None = None) -> None:
        """Stop the read loop and persist the current offset.

        Safe to call from any thread and more than once. Raises StorageError
        if the offset could not be persisted.
        """
        with self._lock:
            if self._state is TailerState.IDLE:
                return
            self._state = TailerState.TERMINATED
        self._stop.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                self._log.warning("Read loop for %s did not stop within %ss", self.filename, timeout)

        self._checkpoint()
        self._log.info("Stopped tailing %s at line %d", self.filename, self.offset)

    def _checkpoint(self) -> None:
        with self._lock:
            self._offsets.persist(self.filename, self._offset)

    def _put(self, records: queue.Queue[LogRecord], record: LogRecord, stop: threading.Event) -> bool:
        """Block until the record is queued; False if stopped first."""
        while not stop.is_set():
            try:
                records.put(record, timeout=self.poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def _run(
        self,
        f: BinaryIO,
        records: queue.Queue[LogRecord],
        to_skip: int,
        stop: threading.Event,
    ) -> None:
        pending = b""
        since_checkpoint = 0
        try:
            with f:
                while not stop.is_set():
                    chunk = f.readline()
                    if not chunk:
                        stop.wait(self.poll_interval)
                        continue

                    # Hold partial lines until the writer finishes them.
                    pending += chunk
                    if not pending.endswith(b"\n"):
                        continue
                    raw, pending = pending, b""

                    # Lines already counted by a previous session.
                    if to_skip > 0:
                        to_skip -= 1
                        continue

                    record = self._parser.parse(raw.decode("utf-8", errors="replace"))
                    if record is not None and not self._put(records, record, stop):
                        break

                    with self._lock:
                        self._offset += 1
                    since_checkpoint += 1
                    if since_checkpoint >= self.checkpoint_every:
                        self._checkpoint()
                        since_checkpoint = 0
        except (OSError, StorageError) as exc:
            self._log.error("Fatal error tailing %s, terminating: %s", self.filename, exc)
            self._fail(exc, stop)
        except Exception as exc:
            self._log.exception("Unexpected error tailing %s, terminating", self.filename)
            self._fail(exc, stop)

    def _fail(self, exc: BaseException, stop: threading.Event) -> None:
        """End the session after a read loop failure, keeping the offset reached."""
        self._error = exc
        with self._lock:
            self._state = TailerState.TERMINATED
        stop.set()
        try:
            self._checkpoint()
        except StorageError as persist_exc:
            self._log.error("Unable to persist offset for %s: %s", self.filename, persist_exc)
