"""Cache backends for the HTTP response cache.

Two backends satisfy the ``CacheBackend`` protocol:
    1. ``InMemoryCache`` — per-process, thread-safe, TTL + LRU bound.
    2. ``RedisCache`` — shared across workers, survives restarts.

Values are JSON-compatible structures so either backend can store them.

Usage::

    from litcal_http.cache import InMemoryCache, RedisCache

    cache = RedisCache.from_url(os.environ["REDIS_URL"]) if redis_url else InMemoryCache()
    cache.set("http_abc", {"status": 200}, ttl_seconds=3600)
"""

from __future__ import annotations

import json
import logging
import math
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any

import redis

logger = logging.getLogger(__name__)

# Redis key namespace
_NS = "litcal:http:"


@dataclass(frozen=True)
class _Slot:
    value: Any
    expires_at: float | None  # clock() deadline, None = no expiry


class InMemoryCache:
    """
    Thread-safe in-process cache with TTL and LRU eviction.

    Args:
        max_size: Maximum number of entries (default: 1000).
        clock: Time source in seconds (injectable for tests).
    """

    def __init__(self, max_size: int = 1000, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize cache with size limit."""
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._clock = clock
        self._data: OrderedDict[str, _Slot] = OrderedDict()
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        """
        Retrieve a value if present and not expired.

        Args:
            key: Cache key.

        Returns:
            Stored value, or None on miss or expiry.
        """
        with self._lock:
            slot = self._data.get(key)
            if slot is None:
                return None

            if slot.expires_at is not None and self._clock() >= slot.expires_at:
                del self._data[key]
                return None

            # Mark as recently used
            self._data.move_to_end(key)
            return slot.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """
        Store a value, evicting the least recently used entry when full.

        Args:
            key: Cache key.
            value: Value to store.
            ttl_seconds: Lifetime in seconds; None keeps it until evicted.
        """
        expires_at = None if ttl_seconds is None else self._clock() + ttl_seconds
        with self._lock:
            if key in self._data:
                del self._data[key]
            elif len(self._data) >= self.max_size:
                self._data.popitem(last=False)
            self._data[key] = _Slot(value=value, expires_at=expires_at)

    def delete(self, key: str) -> None:
        """Remove *key* if present."""
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._data.clear()

    def size(self) -> int:
        """Number of stored entries, expired ones included until touched."""
        with self._lock:
            return len(self._data)


class RedisCache:
    """Redis-backed cache for HTTP responses.

    Errors talking to Redis are logged and treated as misses, so an
    unavailable Redis degrades to "no caching" instead of failing requests.

    Args:
        client: A ``redis.Redis`` client created with ``decode_responses=True``.
        namespace: Prefix prepended to every key.
    """

    def __init__(self, client: redis.Redis, *, namespace: str = _NS) -> None:
        """Wrap an existing Redis client."""
        self._client = client
        self._ns = namespace

    @classmethod
    def from_url(cls, redis_url: str, *, socket_timeout: float = 0.5) -> RedisCache:
        """Create a cache connected to *redis_url*.

        Args:
            redis_url: Redis connection URL, e.g. ``redis://localhost:6379/0``.
            socket_timeout: Socket timeout in seconds.
        """
        client = redis.Redis.from_url(
            redis_url, decode_responses=True, socket_timeout=socket_timeout
        )
        logger.info("RedisCache: using Redis at %s", redis_url)
        return cls(client)

    def _key(self, key: str) -> str:
        return f"{self._ns}{key}"

    def get(self, key: str) -> Any | None:
        """Return the decoded value, or None on miss / error."""
        try:
            raw = self._client.get(self._key(key))
        except redis.RedisError as exc:
            logger.warning("RedisCache.get error: %s", exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            logger.warning("RedisCache.get: discarding undecodable entry %s (%s)", key, exc)
            return None

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store *value* as JSON; uses ``SETEX`` when a TTL is given."""
        payload = json.dumps(value)
        try:
            if ttl_seconds is None:
                self._client.set(self._key(key), payload)
            else:
                # SETEX takes whole seconds, never 0
                self._client.setex(self._key(key), max(1, math.ceil(ttl_seconds)), payload)
        except redis.RedisError as exc:
            logger.warning("RedisCache.set error: %s", exc)

    def delete(self, key: str) -> None:
        """Remove *key*; errors are logged."""
        try:
            self._client.delete(self._key(key))
        except redis.RedisError as exc:
            logger.warning("RedisCache.delete error: %s", exc)

    def flush(self) -> int:
        """Delete every key in this cache's namespace.

        Returns:
            Number of keys deleted.
        """
        try:
            keys = list(self._client.scan_iter(f"{self._ns}*"))
            if not keys:
                return 0
            deleted = self._client.delete(*keys)
        except redis.RedisError as exc:
            logger.warning("RedisCache.flush error: %s", exc)
            return 0
        logger.info("RedisCache: flushed %d keys", deleted)
        return int(deleted)
