"""Per-key mutual exclusion for jobs and machines."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class LockBusyError(RuntimeError):
    """Raised when a non-blocking acquire finds the key already held."""

    def __init__(self, key: str, owner: Optional[str]) -> None:
        super().__init__(f"Lock for {key!r} is held by {owner!r}")
        self.key = key
        self.owner = owner


class KeyedLocks:
    """Lazily created lock per key, with the current owner recorded.

    Locks are never discarded; the key space (machine and job ids) is
    bounded by the number of records.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._owners: Dict[str, str] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def owner(self, key: str) -> Optional[str]:
        with self._guard:
            return self._owners.get(key)

    @contextmanager
    def held(self, key: str, *, owner: str = "", blocking: bool = True) -> Iterator[None]:
        lock = self._lock_for(key)
        if not lock.acquire(blocking=blocking):
            raise LockBusyError(key, self.owner(key))
        with self._guard:
            self._owners[key] = owner
        logger.debug("Lock %s acquired by %s", key, owner or "<anonymous>")
        try:
            yield
        finally:
            with self._guard:
                self._owners.pop(key, None)
            lock.release()


__all__ = ["KeyedLocks", "LockBusyError"]
