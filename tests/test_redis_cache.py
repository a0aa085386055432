"""
Redis Cache Tests - Alignment Chart
tests/test_redis_cache.py

Tests for the async remote cache: hits, misses, TTL writes and graceful
degradation when Redis is down.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel

from alignment_chart.core.exceptions import CacheUnavailable
from alignment_chart.models.alignment import AlignmentResult
from alignment_chart.services.redis_cache import RedisCache

from conftest import FakeRedis


class MockModel(BaseModel):
    """Mock Pydantic model for testing."""
    id: str
    name: str


class TestRedisCache:
    """Tests for the RedisCache class."""

    def test_client_is_created_lazily(self):
        """Test the Redis client is only built on first use."""
        with patch("alignment_chart.services.redis_cache.redis.from_url") as mock_from_url:
            cache = RedisCache(url="redis://cache:6379/1")
            mock_from_url.assert_not_called()
            assert cache.client is not None
            assert cache.client is cache.client
            mock_from_url.assert_called_once()
            assert mock_from_url.call_args.args[0] == "redis://cache:6379/1"

    def test_cache_set_and_get(self):
        """Test setting and getting cached values."""
        mock_client = MagicMock()
        mock_client.setex = AsyncMock()
        cache = RedisCache(client=mock_client)
        model = MockModel(id="123", name="Test")

        asyncio.run(cache.set("test:key", model, 300))
        mock_client.setex.assert_awaited_once_with("test:key", 300, model.model_dump_json())

        mock_client.get = AsyncMock(return_value=model.model_dump_json())
        result = asyncio.run(cache.get("test:key", MockModel))
        assert result is not None
        assert result.id == "123"
        assert result.name == "Test"

    def test_cache_get_miss(self):
        """Test cache miss returns None."""
        mock_client = MagicMock()
        mock_client.get = AsyncMock(return_value=None)
        cache = RedisCache(client=mock_client)
        assert asyncio.run(cache.get("nonexistent:key", MockModel)) is None

    def test_alignment_result_stored_by_alias(self):
        """Test cached results use the camelCase wire shape and round-trip."""
        fake = FakeRedis()
        cache = RedisCache(client=fake)
        result = AlignmentResult(lawful_chaotic=40, good_evil=-10, explanation="steady")

        asyncio.run(cache.set("analysis-linkedin:v1:alice", result, 1_209_600))
        stored = fake.store["analysis-linkedin:v1:alice"]
        assert '"lawfulChaotic":40.0' in stored
        assert "authorName" not in stored
        assert fake.ttls["analysis-linkedin:v1:alice"] == 1_209_600

        loaded = asyncio.run(cache.get("analysis-linkedin:v1:alice", AlignmentResult))
        assert loaded == result

    def test_cache_delete(self):
        """Test deleting a cache entry."""
        mock_client = MagicMock()
        mock_client.delete = AsyncMock()
        cache = RedisCache(client=mock_client)
        asyncio.run(cache.delete("test:key"))
        mock_client.delete.assert_awaited_once_with("test:key")


class TestGracefulDegradation:
    """A Redis outage must never raise out of the cache."""

    def test_get_failure_is_a_miss(self):
        fake = FakeRedis()
        fake.fail = True
        cache = RedisCache(client=fake)
        assert asyncio.run(cache.get("k", MockModel)) is None

    def test_set_failure_is_dropped(self):
        fake = FakeRedis()
        fake.fail = True
        cache = RedisCache(client=fake)
        asyncio.run(cache.set("k", MockModel(id="1", name="x"), 60))
        assert fake.store == {}

    def test_corrupt_entry_is_a_miss(self):
        fake = FakeRedis()
        fake.store["k"] = "{not json"
        cache = RedisCache(client=fake)
        assert asyncio.run(cache.get("k", MockModel)) is None

    def test_ping_reports_outage(self):
        fake = FakeRedis()
        cache = RedisCache(client=fake)
        assert asyncio.run(cache.ping()) is True
        fake.fail = True
        assert asyncio.run(cache.ping()) is False

    def test_client_errors_become_cache_unavailable(self):
        fake = FakeRedis()
        fake.fail = True
        cache = RedisCache(client=fake)
        with pytest.raises(CacheUnavailable) as exc_info:
            asyncio.run(cache._call("get", "k"))
        assert "redis unavailable" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_delete_failure_is_absorbed(self):
        fake = FakeRedis()
        fake.fail = True
        cache = RedisCache(client=fake)
        with patch("alignment_chart.services.redis_cache.logger") as mock_logger:
            asyncio.run(cache.delete("k"))
        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.args[0] == "remote_cache_delete_failed"
