"""
Shared arm/disarm state guarded by a reader/writer lock.

The store is touched from both the chat poller and the local listener, so
reads may overlap freely while writes are exclusive.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from .contracts import AlarmState


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class StateStore:
    """Holds the single alarm state; starts disarmed."""

    def __init__(self, initial: AlarmState = AlarmState.DISARMED) -> None:
        self._lock = ReadWriteLock()
        self._value = initial

    def get(self) -> AlarmState:
        with self._lock.read():
            return self._value

    def set(self, value: AlarmState) -> None:
        # No validation here: callers decide which values are meaningful.
        with self._lock.write():
            self._value = value


__all__ = ["ReadWriteLock", "StateStore"]
