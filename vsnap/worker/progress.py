"""
Worker side of the progress protocol.

CountingReader / CountingWriter wrap a byte stream and report every chunk
to a ProgressReporter. The reporter only increments a counter on the data
path; a single background thread turns the counter into progress records
on stdout, so a slow consumer never stalls archiving. Increments arriving
between two emissions are coalesced, and close() always writes the final
record.
"""

from __future__ import annotations

import io
import sys
import threading
from typing import BinaryIO, Callable, Optional, TextIO

from ..helpers.constants import PROGRESS_EMIT_INTERVAL
from ..helpers.logging import get_logger
from ..models import ProgressRecord

logger = get_logger(__name__)


class ProgressReporter:
    """Aggregates byte counts and writes ProgressRecord lines."""

    def __init__(
        self,
        total: int,
        stream: Optional[TextIO] = None,
        interval: float = PROGRESS_EMIT_INTERVAL,
    ):
        if total < 0:
            raise ValueError(f"total must not be negative: {total}")
        self.total = total
        self.interval = interval
        self._stream = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()
        self._emit_lock = threading.Lock()
        self._progress = 0
        self._emitted: Optional[int] = None
        self._wake = threading.Event()
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._write_failed = False

    @property
    def progress(self) -> int:
        with self._lock:
            return self._progress

    def start(self) -> ProgressReporter:
        if self._thread is not None:
            raise RuntimeError("progress reporter already started")
        self._emit()
        self._thread = threading.Thread(target=self._run, name="vsnap-progress", daemon=True)
        self._thread.start()
        return self

    def add(self, count: int) -> None:
        """Account for ``count`` processed bytes. Never blocks on output."""
        if count <= 0:
            return
        with self._lock:
            self._progress = min(self._progress + count, self.total)
        self._wake.set()

    def close(self) -> None:
        """Stop the emitter thread and write the final record."""
        self._stopped.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._emit(force=True)

    def __enter__(self) -> ProgressReporter:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _run(self) -> None:
        while not self._stopped.is_set():
            self._wake.wait(self.interval)
            self._wake.clear()
            if self._stopped.is_set():
                break
            self._emit()
            # at most one record per interval; close() cuts the pause short
            self._stopped.wait(self.interval)

    def _emit(self, force: bool = False) -> None:
        with self._emit_lock:
            current = self.progress
            if current == self._emitted and not force:
                return
            record = ProgressRecord(progress=current, total=self.total)
            try:
                self._stream.write(record.to_line() + "\n")
                self._stream.flush()
            except (OSError, ValueError) as e:
                # stdout gone (closed pipe); archiving goes on without progress
                if not self._write_failed:
                    logger.warning(f"Cannot write progress records: {e}")
                    self._write_failed = True
            self._emitted = current


class CountingReader(io.RawIOBase):
    """Readable stream that reports the size of every chunk it hands out."""

    def __init__(self, inner: BinaryIO, on_chunk: Callable[[int], None]):
        super().__init__()
        self._inner = inner
        self._on_chunk = on_chunk

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        data = self._inner.read(size)
        if data:
            self._on_chunk(len(data))
        return data

    def readinto(self, buffer) -> int:
        data = self.read(len(buffer))
        buffer[: len(data)] = data
        return len(data)


class CountingWriter(io.RawIOBase):
    """Writable stream that reports the size of every chunk it accepts."""

    def __init__(self, inner: BinaryIO, on_chunk: Callable[[int], None]):
        super().__init__()
        self._inner = inner
        self._on_chunk = on_chunk

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        written = self._inner.write(data)
        if written is None:
            written = len(data)
        if written:
            self._on_chunk(written)
        return written

    def flush(self) -> None:
        if not getattr(self._inner, "closed", False):
            self._inner.flush()
