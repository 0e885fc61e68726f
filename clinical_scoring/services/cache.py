"""
Scoring Cache - Clinical Scoring Core
clinical_scoring/services/cache.py

Front for the cache backends with key hashing and hit/miss accounting.
Backend failures never reach the caller: they are logged, counted, and
treated as a miss (reads) or a no-op (writes).
"""
import hashlib
import json
import threading
from typing import Any, Mapping, Optional, Protocol, Type, TypeVar

import redis
import structlog
from pydantic import BaseModel

from clinical_scoring.models.results import CacheStats
from clinical_scoring.services.clock import Clock
from clinical_scoring.services.memory_cache import MemoryCacheBackend
from clinical_scoring.services.redis_cache import RedisCacheBackend

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

# TTL presets (in seconds)
TTL_EVALUATION = 300    # 5 minutes
TTL_DASHBOARD = 1800    # 30 minutes
TTL_DEGRADED = 30       # results computed with a fallback dependency


class CacheBackend(Protocol):
    def get(self, key: str, model: Type[T]) -> Optional[T]: ...

    def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_pattern(self, pattern: str) -> None: ...

    def size(self) -> int: ...


def make_cache_key(scope: str, operation: str, params: Mapping[str, Any]) -> str:
    """
    Deterministic key ``"{scope}:{operation}:{sha256}"``.

    The digest covers the canonical JSON of ``params`` so key order in the
    mapping does not matter.

    Examples:
        >>> a = make_cache_key("oasis", "evaluate", {"b": 1, "a": 2})
        >>> a == make_cache_key("oasis", "evaluate", {"a": 2, "b": 1})
        True
    """
    canonical = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{scope}:{operation}:{digest}"


class ScoringCache:
    """Cache front over a memory or Redis backend."""

    def __init__(self, backend: CacheBackend):
        self.backend = backend
        self._hits = 0
        self._misses = 0
        self._errors = 0
        self._lock = threading.Lock()

    def _count(self, attr: str) -> None:
        with self._lock:
            setattr(self, attr, getattr(self, attr) + 1)

    def get(self, key: str, model: Type[T]) -> Optional[T]:
        try:
            value = self.backend.get(key, model)
        except Exception as e:
            self._count("_errors")
            self._count("_misses")
            logger.warning("cache_get_failed", key=key, error=str(e), error_type=type(e).__name__)
            return None

        if value is None:
            self._count("_misses")
            return None
        self._count("_hits")
        return value

    def set(self, key: str, value: BaseModel, ttl_seconds: int = TTL_EVALUATION) -> None:
        try:
            self.backend.set(key, value, ttl_seconds)
        except Exception as e:
            self._count("_errors")
            logger.warning("cache_set_failed", key=key, error=str(e), error_type=type(e).__name__)

    def delete(self, key: str) -> None:
        try:
            self.backend.delete(key)
        except Exception as e:
            self._count("_errors")
            logger.warning("cache_delete_failed", key=key, error=str(e))

    def delete_pattern(self, pattern: str) -> None:
        try:
            self.backend.delete_pattern(pattern)
        except Exception as e:
            self._count("_errors")
            logger.warning("cache_delete_failed", pattern=pattern, error=str(e))

    def size(self) -> int:
        try:
            return self.backend.size()
        except Exception as e:
            self._count("_errors")
            logger.warning("cache_size_failed", error=str(e))
            return 0

    def stats(self) -> CacheStats:
        size = self.size()
        with self._lock:
            lookups = self._hits + self._misses
            hit_rate = round(self._hits / lookups, 4) if lookups else 0.0
            return CacheStats(
                size=size,
                hits=self._hits,
                misses=self._misses,
                errors=self._errors,
                hit_rate=hit_rate,
            )


def create_cache(
    backend: str = "memory",
    redis_url: str = "redis://localhost:6379/0",
    max_entries: int = 1000,
    clock: Optional[Clock] = None,
) -> ScoringCache:
    """
    Build the cache front for the configured backend.

    Note:
        Falls back to the in-process store when Redis is unreachable at
        startup, allowing the core to keep caching (graceful degradation).
    """
    if backend == "redis":
        try:
            store = RedisCacheBackend(redis_url)
            store.ping()
            logger.info("cache_backend_ready", backend="redis")
            return ScoringCache(store)
        except (redis.RedisError, ConnectionError) as e:
            logger.warning("cache_redis_unavailable", url=redis_url, error=str(e))

    logger.info("cache_backend_ready", backend="memory", max_entries=max_entries)
    return ScoringCache(MemoryCacheBackend(max_entries=max_entries, clock=clock))
