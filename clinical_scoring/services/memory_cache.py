"""
In-process TTL cache store.

Entries expire lazily on read. Writes beyond capacity evict the oldest
entry. One lock guards the store.
"""
import fnmatch
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Type, TypeVar

from pydantic import BaseModel

from clinical_scoring.services.clock import Clock, system_clock

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class CacheEntry:
    value: BaseModel
    expires_at: float


class MemoryCacheBackend:
    def __init__(self, max_entries: int = 1000, clock: Optional[Clock] = None):
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.max_entries = max_entries
        self._clock = clock or system_clock
        self._store: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str, model: Type[T]) -> Optional[T]:
        """Get cached item, dropping it if its TTL has passed."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._store[key]
                return None
            if not isinstance(entry.value, model):
                return None
            return entry.value

    def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        with self._lock:
            if key in self._store:
                del self._store[key]
            self._store[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)
            while len(self._store) > self.max_entries:
                self._store.popitem(last=False)

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def delete_pattern(self, pattern: str) -> None:
        with self._lock:
            for key in [k for k in self._store if fnmatch.fnmatchcase(k, pattern)]:
                del self._store[key]

    def size(self) -> int:
        with self._lock:
            return len(self._store)
