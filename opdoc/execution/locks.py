"""Per-path locks shared by concurrently running documents."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class PathLockManager:
    """Hands out one lock per root-relative path.

    Locks for a document are always taken in sorted order, so two documents
    sharing several paths cannot deadlock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, path: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = self._locks[path] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, paths: Iterable[str]) -> Iterator[list[str]]:
        ordered = sorted(set(paths))
        acquired: list[threading.Lock] = []
        try:
            for path in ordered:
                lock = self._lock_for(path)
                if not lock.acquire(blocking=False):
                    logger.debug("waiting for lock on %s", path)
                    lock.acquire()
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()

    def is_locked(self, path: str) -> bool:
        with self._guard:
            lock = self._locks.get(path)
        return lock is not None and lock.locked()
