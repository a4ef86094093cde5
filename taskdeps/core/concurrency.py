"""
TaskDeps — Graph Locking & Deadlines
======================================
Single-writer discipline for a dependency graph, and deadlines for
long-running analyses.

``ReadWriteLock``
    Any number of readers, or exactly one writer.  Readers may nest (an
    analysis holding the read lock can call store getters that take it
    again).  A writer may also re-enter the write lock and take read locks
    while holding it.

``Deadline``
    Monotonic-clock budget plus an optional ``threading.Event`` used as a
    cancellation token.  Traversals call ``check()`` once per step.

Usage:
    lock = ReadWriteLock()
    with lock.read():
        ...
    with lock.write():
        ...

    deadline = Deadline.after(5.0)
    deadline.check("critical_path.enumerate")
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Iterator

from taskdeps.core.exceptions import AnalysisCancelledError, AnalysisTimeoutError


class ReadWriteLock:
    """
    Reader-preferring reader/writer lock built on ``threading.Condition``.

    Thread safety: all state is guarded by the internal condition.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers: dict[int, int] = {}
        self._writer: int | None = None
        self._writer_depth = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    def acquire_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            # Re-entrant for a thread already reading or writing.
            if me not in self._readers and self._writer != me:
                while self._writer is not None:
                    self._cond.wait()
            self._readers[me] = self._readers.get(me, 0) + 1

    def release_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            count = self._readers.get(me, 0)
            if count == 0:
                raise RuntimeError("release_read() without matching acquire_read()")
            if count == 1:
                del self._readers[me]
            else:
                self._readers[me] = count - 1
            if not self._readers:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._writer_depth += 1
                return
            if me in self._readers:
                raise RuntimeError("cannot upgrade a read lock to a write lock")
            while self._writer is not None or self._readers:
                self._cond.wait()
            self._writer = me
            self._writer_depth = 1

    def release_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer != me:
                raise RuntimeError("release_write() by a thread not holding the lock")
            self._writer_depth -= 1
            if self._writer_depth == 0:
                self._writer = None
                self._cond.notify_all()

    @property
    def reader_count(self) -> int:
        with self._cond:
            return sum(self._readers.values())

    @property
    def write_locked(self) -> bool:
        with self._cond:
            return self._writer is not None


class Deadline:
    """Time budget and cancellation token for one analysis run."""

    __slots__ = ("_expires_at", "_timeout", "_cancel_event")

    def __init__(
        self,
        timeout_seconds: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._expires_at = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )
        self._cancel_event = cancel_event

    @classmethod
    def after(cls, seconds: float, cancel_event: threading.Event | None = None) -> Deadline:
        return cls(seconds, cancel_event)

    @classmethod
    def never(cls) -> Deadline:
        return cls(None)

    @property
    def timeout_seconds(self) -> float | None:
        return self._timeout

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def check(self, operation: str) -> None:
        """Raise if the run was cancelled or its budget is spent."""
        if self.cancelled():
            raise AnalysisCancelledError(operation)
        if self.expired():
            raise AnalysisTimeoutError(operation, self._timeout)
