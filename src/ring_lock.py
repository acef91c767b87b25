"""
Reader/Writer Lock

Guards the hash ring so that lookups can run side by side while
membership changes get the ring to themselves.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class ReadWriteLock:
    """
    A lock with shared (read) and exclusive (write) modes.

    Many readers may hold the lock at once. A writer waits for active
    readers to drain and then blocks everyone else. Waiting writers take
    priority over newly arriving readers so that a steady stream of
    lookups cannot starve a membership change.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read() called without a held read lock")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            except BaseException:
                # Readers parked behind us must be able to proceed.
                self._writers_waiting -= 1
                self._cond.notify_all()
                raise
            self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() called without a held write lock")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        """Hold the lock in shared mode for the duration of the block."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        """Hold the lock exclusively for the duration of the block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    @property
    def readers(self) -> int:
        """Number of readers currently holding the lock."""
        with self._cond:
            return self._readers

    @property
    def write_held(self) -> bool:
        with self._cond:
            return self._writer
