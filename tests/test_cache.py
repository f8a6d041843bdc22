"""Tests for litcal_http/cache.py — InMemoryCache and RedisCache backends."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
import redis
from conftest import FakeClock

from litcal_http.cache import InMemoryCache, RedisCache

# ---------------------------------------------------------------------------
# InMemoryCache
# ---------------------------------------------------------------------------


class TestInMemoryCache:
    def test_hit_and_miss(self) -> None:
        cache = InMemoryCache()
        cache.set("a", {"status": 200})
        assert cache.get("a") == {"status": 200}
        assert cache.get("b") is None

    def test_ttl_expiration(self, clock: FakeClock) -> None:
        cache = InMemoryCache(clock=clock)
        cache.set("a", 1, ttl_seconds=10)
        clock.advance(9)
        assert cache.get("a") == 1
        clock.advance(1)
        assert cache.get("a") is None
        assert cache.size() == 0

    def test_no_ttl_never_expires(self, clock: FakeClock) -> None:
        cache = InMemoryCache(clock=clock)
        cache.set("a", 1)
        clock.advance(10**9)
        assert cache.get("a") == 1

    def test_lru_eviction(self) -> None:
        cache = InMemoryCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_lru_reordering_on_get(self) -> None:
        cache = InMemoryCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.get("a") == 1
        assert cache.get("b") is None

    def test_update_existing_entry_does_not_evict(self) -> None:
        cache = InMemoryCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        assert cache.size() == 2
        assert cache.get("a") == 10
        assert cache.get("b") == 2

    def test_delete_and_clear(self) -> None:
        cache = InMemoryCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        cache.delete("missing")
        assert cache.get("a") is None
        cache.clear()
        assert cache.size() == 0

    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            InMemoryCache(max_size=0)


# ---------------------------------------------------------------------------
# RedisCache — backed by a MagicMock client
# ---------------------------------------------------------------------------


class TestRedisCache:
    def test_set_with_ttl_uses_setex(self) -> None:
        client = MagicMock()
        RedisCache(client).set("k", {"status": 200}, ttl_seconds=3600)
        client.setex.assert_called_once_with("litcal:http:k", 3600, json.dumps({"status": 200}))

    def test_fractional_ttl_rounds_up(self) -> None:
        client = MagicMock()
        RedisCache(client).set("k", 1, ttl_seconds=0.2)
        assert client.setex.call_args.args[1] == 1

    def test_set_without_ttl_uses_set(self) -> None:
        client = MagicMock()
        RedisCache(client, namespace="t:").set("k", [1, 2])
        client.set.assert_called_once_with("t:k", "[1, 2]")
        client.setex.assert_not_called()

    def test_get_decodes_json(self) -> None:
        client = MagicMock()
        client.get.return_value = '{"status": 200}'
        assert RedisCache(client).get("k") == {"status": 200}
        client.get.assert_called_once_with("litcal:http:k")

    def test_get_miss(self) -> None:
        client = MagicMock()
        client.get.return_value = None
        assert RedisCache(client).get("k") is None

    def test_get_undecodable_is_miss(self) -> None:
        client = MagicMock()
        client.get.return_value = "{not json"
        assert RedisCache(client).get("k") is None

    def test_get_error_fails_open(self, caplog: pytest.LogCaptureFixture) -> None:
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        with caplog.at_level("WARNING", logger="litcal_http.cache"):
            assert RedisCache(client).get("k") is None
        assert "RedisCache.get error" in caplog.text

    def test_set_error_fails_open(self) -> None:
        client = MagicMock()
        client.setex.side_effect = redis.TimeoutError("slow")
        RedisCache(client).set("k", 1, ttl_seconds=5)

    def test_flush_deletes_namespace(self) -> None:
        client = MagicMock()
        client.scan_iter.return_value = iter(["litcal:http:a", "litcal:http:b"])
        client.delete.return_value = 2
        assert RedisCache(client).flush() == 2
        client.scan_iter.assert_called_once_with("litcal:http:*")
        client.delete.assert_called_once_with("litcal:http:a", "litcal:http:b")

    def test_flush_empty(self) -> None:
        client = MagicMock()
        client.scan_iter.return_value = iter([])
        assert RedisCache(client).flush() == 0
        client.delete.assert_not_called()

    def test_from_url(self) -> None:
        with patch("litcal_http.cache.redis.Redis.from_url") as from_url:
            cache = RedisCache.from_url("redis://localhost:6379/0")
        from_url.assert_called_once_with(
            "redis://localhost:6379/0", decode_responses=True, socket_timeout=0.5
        )
        assert isinstance(cache, RedisCache)
