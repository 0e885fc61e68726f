"""
Cache Tests - Clinical Scoring Core
tests/test_cache.py

Tests for key hashing, the in-process TTL store, the Redis store and the
cache front's graceful degradation.
"""
import pytest
from unittest.mock import patch, MagicMock
from pydantic import BaseModel
import redis

from clinical_scoring.services.cache import (
    TTL_DASHBOARD,
    TTL_EVALUATION,
    ScoringCache,
    create_cache,
    make_cache_key,
)
from clinical_scoring.services.memory_cache import MemoryCacheBackend
from clinical_scoring.services.redis_cache import RedisCacheBackend


class MockModel(BaseModel):
    """Mock Pydantic model for testing."""
    id: str
    name: str


class TestCacheKeys:
    """Deterministic, order-independent keys."""

    def test_key_shape(self):
        key = make_cache_key("oasis", "evaluate", {"a": 1})
        scope, operation, digest = key.split(":")
        assert (scope, operation) == ("oasis", "evaluate")
        assert len(digest) == 64

    def test_param_order_does_not_matter(self):
        assert make_cache_key("oasis", "evaluate", {"a": 1, "b": 2}) == \
            make_cache_key("oasis", "evaluate", {"b": 2, "a": 1})

    def test_different_params_different_keys(self):
        assert make_cache_key("oasis", "evaluate", {"a": 1}) != \
            make_cache_key("oasis", "evaluate", {"a": 2})

    def test_record_payload_hash_is_stable(self, mid_range_record):
        payload = mid_range_record.canonical_payload()
        assert make_cache_key("oasis", "evaluate", payload) == \
            make_cache_key("oasis", "evaluate", mid_range_record.canonical_payload())

    def test_ttl_presets(self):
        assert TTL_EVALUATION == 300
        assert TTL_DASHBOARD == 1800


class TestMemoryCacheBackend:
    """In-process store with lazy expiry and a capacity bound."""

    def test_set_then_get(self, clock):
        store = MemoryCacheBackend(clock=clock)
        model = MockModel(id="123", name="Test")
        store.set("k", model, 300)
        assert store.get("k", MockModel) == model

    def test_expired_entry_is_a_miss(self, clock):
        store = MemoryCacheBackend(clock=clock)
        store.set("k", MockModel(id="1", name="a"), 300)
        clock.advance(299)
        assert store.get("k", MockModel) is not None
        clock.advance(1)
        assert store.get("k", MockModel) is None
        assert store.size() == 0

    def test_capacity_evicts_oldest(self, clock):
        store = MemoryCacheBackend(max_entries=2, clock=clock)
        for i in range(3):
            store.set(f"k{i}", MockModel(id=str(i), name="x"), 300)
        assert store.size() == 2
        assert store.get("k0", MockModel) is None
        assert store.get("k2", MockModel) is not None

    def test_delete_and_pattern(self, clock):
        store = MemoryCacheBackend(clock=clock)
        for key in ("oasis:evaluate:1", "oasis:evaluate:2", "dashboard:x:1"):
            store.set(key, MockModel(id=key, name="x"), 300)
        store.delete("dashboard:x:1")
        assert store.size() == 2
        store.delete_pattern("oasis:*")
        assert store.size() == 0

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            MemoryCacheBackend(max_entries=0)


class TestRedisCacheBackend:
    """Tests for the Redis store."""

    def test_redis_cache_init(self):
        """Test RedisCacheBackend initialization."""
        with patch('clinical_scoring.services.redis_cache.redis.from_url') as mock_from_url:
            cache = RedisCacheBackend("redis://cache:6379/0")
            mock_from_url.assert_called_once()
            assert mock_from_url.call_args.args[0] == "redis://cache:6379/0"
            assert cache.client is not None

    def test_cache_set_and_get(self):
        """Test setting and getting cached values."""
        mock_client = MagicMock()
        cache = RedisCacheBackend(client=mock_client)
        model = MockModel(id="123", name="Test")

        cache.set("test:key", model, 300)
        mock_client.setex.assert_called_once_with(
            "test:key",
            300,
            model.model_dump_json()
        )

        mock_client.get.return_value = model.model_dump_json()
        result = cache.get("test:key", MockModel)
        assert result is not None
        assert result.id == "123"
        assert result.name == "Test"

    def test_cache_get_miss(self):
        """Test cache miss returns None."""
        mock_client = MagicMock()
        mock_client.get.return_value = None
        cache = RedisCacheBackend(client=mock_client)
        assert cache.get("nonexistent:key", MockModel) is None

    def test_cache_delete_pattern(self):
        """Test deleting cache entries by pattern."""
        mock_client = MagicMock()
        mock_client.scan_iter.return_value = ["key:1", "key:2", "key:3"]
        cache = RedisCacheBackend(client=mock_client)
        cache.delete_pattern("key:*")

        mock_client.scan_iter.assert_called_once_with(match="key:*")
        assert mock_client.delete.call_count == 3

    def test_size_uses_dbsize(self):
        mock_client = MagicMock()
        mock_client.dbsize.return_value = 7
        assert RedisCacheBackend(client=mock_client).size() == 7


class TestScoringCache:
    """Hit/miss accounting and graceful degradation."""

    def test_hit_and_miss_counts(self, memory_cache):
        model = MockModel(id="1", name="a")
        assert memory_cache.get("k", MockModel) is None
        memory_cache.set("k", model, 300)
        assert memory_cache.get("k", MockModel) == model

        stats = memory_cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5
        assert stats.size == 1

    def test_ttl_expiry_is_a_miss(self, memory_cache, clock):
        memory_cache.set("k", MockModel(id="1", name="a"), 300)
        clock.advance(301)
        assert memory_cache.get("k", MockModel) is None

    def test_backend_get_error_degrades_to_miss(self):
        backend = MagicMock()
        backend.get.side_effect = redis.ConnectionError("Redis unavailable")
        cache = ScoringCache(backend)

        assert cache.get("k", MockModel) is None
        assert cache._errors == 1
        assert cache._misses == 1

    def test_backend_set_error_is_swallowed(self):
        backend = MagicMock()
        backend.set.side_effect = redis.TimeoutError("slow")
        cache = ScoringCache(backend)
        cache.set("k", MockModel(id="1", name="a"), 300)
        assert cache._errors == 1

    def test_stats_survive_size_errors(self):
        backend = MagicMock()
        backend.size.side_effect = redis.ConnectionError("down")
        stats = ScoringCache(backend).stats()
        assert stats.size == 0
        assert stats.errors == 1
        assert stats.hit_rate == 0.0


class TestCreateCache:
    """Backend selection with fallback to the in-process store."""

    def test_memory_backend_by_default(self):
        cache = create_cache()
        assert isinstance(cache.backend, MemoryCacheBackend)

    def test_redis_backend_when_reachable(self):
        with patch('clinical_scoring.services.redis_cache.redis.from_url') as mock_from_url:
            mock_from_url.return_value.ping.return_value = True
            cache = create_cache(backend="redis", redis_url="redis://cache:6379/0")
            assert isinstance(cache.backend, RedisCacheBackend)

    def test_falls_back_to_memory_when_redis_unavailable(self):
        with patch('clinical_scoring.services.redis_cache.redis.from_url') as mock_from_url:
            mock_from_url.return_value.ping.side_effect = redis.ConnectionError("Redis unavailable")
            cache = create_cache(backend="redis")
            assert isinstance(cache.backend, MemoryCacheBackend)
