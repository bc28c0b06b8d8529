"""In-memory stores for machine profiles and laser jobs.

Both stores behave like :class:`laser_ops.storage.SQLiteRepository`: records
are copied on the way in and on the way out, so a job or machine fetched by
the service can be checked and edited freely and nothing changes until it
is written back with ``upsert``.
"""

from __future__ import annotations

import threading
from copy import deepcopy
from typing import Callable, Dict, Generic, Iterator, List, TypeVar

T = TypeVar("T")


class RepositoryError(RuntimeError):
    """Base exception for repository errors."""


class DuplicateRecordError(RepositoryError):
    """Raised when a machine or job id is registered twice."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested machine or job is missing."""


class InMemoryRepository(Generic[T]):
    """Thread-safe dictionary store keyed by record id."""

    def __init__(self) -> None:
        self._records: Dict[str, T] = {}
        self._lock = threading.RLock()

    def __contains__(self, item_id: object) -> bool:
        with self._lock:
            return item_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[T]:
        return iter(self.list())

    def add(self, item_id: str, item: T) -> None:
        with self._lock:
            if item_id in self._records:
                raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
            self._records[item_id] = deepcopy(item)

    def upsert(self, item_id: str, item: T) -> None:
        with self._lock:
            self._records[item_id] = deepcopy(item)

    def get(self, item_id: str) -> T:
        with self._lock:
            record = self._records.get(item_id)
            if record is None:
                raise RecordNotFoundError(f"Record with id {item_id!r} not found")
            return deepcopy(record)

    def remove(self, item_id: str) -> None:
        with self._lock:
            if self._records.pop(item_id, None) is None:
                raise RecordNotFoundError(f"Record with id {item_id!r} not found")

    def list(self) -> List[T]:
        with self._lock:
            return [deepcopy(record) for record in self._records.values()]

    def filter(self, predicate: Callable[[T], bool]) -> List[T]:
        with self._lock:
            return [deepcopy(record) for record in self._records.values() if predicate(record)]


__all__ = [
    "InMemoryRepository",
    "RepositoryError",
    "DuplicateRecordError",
    "RecordNotFoundError",
]
