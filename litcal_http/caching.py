"""GET-only response cache decorator.

Cache key = SHA-256 over the URL plus the *cache-relevant* request headers
(by default ``Accept`` and ``Accept-Language``).  Headers such as
``User-Agent`` or trace IDs never perturb the key, so they cannot split the
cache.  Only 2xx responses are stored; POST always goes to the inner client.

Concurrent misses for the same key are single-flighted: the first caller
fetches, the others wait on a per-key lock and then read the fresh entry.

Usage::

    from litcal_http.caching import CachingClient
    from litcal_http.cache import InMemoryCache

    client = CachingClient(transport, InMemoryCache())
    client.get(url, {"Accept-Language": "it"})   # network
    client.get(url, {"Accept-Language": "it"})   # cache hit
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from litcal_core.config import CacheConfig
from litcal_core.types import (
    CacheBackend,
    HeaderValue,
    HttpClient,
    RequestBody,
    RequestHeaders,
    Response,
)
from litcal_http import metrics

_KEY_PREFIX = "http_"


def make_cache_key(
    url: str,
    headers: RequestHeaders | None,
    relevant_headers: tuple[str, ...],
) -> str:
    """
    Deterministic cache key from URL and cache-relevant headers.

    Args:
        url: Full request URL including query string.
        headers: Request headers; names are matched case-insensitively.
        relevant_headers: Lower-cased header names that affect the response.

    Returns:
        ``"http_"`` followed by a hex SHA-256 digest.
    """
    selected = {
        name.lower(): value
        for name, value in (headers or {}).items()
        if name.lower() in relevant_headers
    }
    raw = json.dumps({"url": url, "headers": selected}, sort_keys=True, separators=(",", ":"))
    return _KEY_PREFIX + hashlib.sha256(raw.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    """A stored response and the instant after which it is stale."""

    status_code: int
    headers: Mapping[str, HeaderValue]
    body: bytes
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """True once *now* has reached the expiry instant."""
        return now >= self.expires_at

    def to_response(self) -> Response:
        """Rebuild a ``Response`` from the stored fields."""
        return Response(self.status_code, self.headers, self.body)

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible form accepted by every backend."""
        return {
            "status": self.status_code,
            "headers": {
                k: list(v) if isinstance(v, tuple) else v for k, v in self.headers.items()
            },
            "body": base64.b64encode(self.body).decode("ascii"),
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CacheEntry:
        """Inverse of ``to_dict``.

        Raises:
            KeyError, TypeError, ValueError: If *data* is not a stored entry.
        """
        return cls(
            status_code=int(data["status"]),
            headers=dict(data["headers"]),
            body=base64.b64decode(data["body"]),
            expires_at=float(data["expires_at"]),
        )


@dataclass
class _Flight:
    lock: threading.Lock = field(default_factory=threading.Lock)
    waiters: int = 0


class CachingClient:
    """
    Decorator caching successful GET responses.

    Satisfies the ``HttpClient`` protocol.

    Args:
        inner: Wrapped client (held by reference).
        cache: Backend implementing ``CacheBackend``.
        config: TTL and cache-relevant header names.
        logger: Logger for hit/miss events (default: module logger).
        clock: Wall-clock time source in seconds.  Expiry instants are
            stored in the backend, so this must be comparable across
            processes when the backend is shared.
    """

    def __init__(
        self,
        inner: HttpClient,
        cache: CacheBackend,
        config: CacheConfig | None = None,
        *,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._inner = inner
        self._cache = cache
        self._config = config or CacheConfig()
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._flights: dict[str, _Flight] = {}
        self._flights_lock = threading.Lock()

    @property
    def config(self) -> CacheConfig:
        """Active cache configuration."""
        return self._config

    def cache_key(self, url: str, headers: RequestHeaders | None = None) -> str:
        """Key under which a GET of *url* with *headers* is stored."""
        return make_cache_key(url, headers, self._config.relevant_headers)

    def get(self, url: str, headers: RequestHeaders | None = None) -> Response:
        """Serve from cache when fresh, otherwise fetch and store 2xx responses."""
        key = self.cache_key(url, headers)
        context = {"url": url, "key": key}

        cached = self._lookup(key)
        if cached is not None:
            self._logger.debug("Cache hit", extra={"event": "cache_hit", "context": context})
            metrics.record_cache_hit()
            return cached

        with self._single_flight(key):
            # Another caller may have filled the entry while we waited
            cached = self._lookup(key)
            if cached is not None:
                self._logger.debug("Cache hit", extra={"event": "cache_hit", "context": context})
                metrics.record_cache_hit()
                return cached

            self._logger.debug("Cache miss", extra={"event": "cache_miss", "context": context})
            metrics.record_cache_miss()
            response = self._inner.get(url, headers)
            if response.is_success:
                self._store(key, response)
            return response

    def post(
        self,
        url: str,
        body: RequestBody,
        headers: RequestHeaders | None = None,
    ) -> Response:
        """POST requests are never cached."""
        return self._inner.post(url, body, headers)

    def evict(self, url: str, headers: RequestHeaders | None = None) -> None:
        """Drop the stored response for a GET of *url* with *headers*, if any."""
        key = self.cache_key(url, headers)
        self._cache.delete(key)
        self._logger.debug(
            "Cache entry evicted",
            extra={"event": "cache_evict", "context": {"url": url, "key": key}},
        )

    def _lookup(self, key: str) -> Response | None:
        data = self._cache.get(key)
        if data is None:
            return None
        try:
            entry = CacheEntry.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            self._logger.warning("Ignoring malformed cache entry %s: %s", key, exc)
            return None
        if entry.is_expired(self._clock()):
            return None
        return entry.to_response()

    def _store(self, key: str, response: Response) -> None:
        ttl = self._config.ttl_seconds
        entry = CacheEntry(
            status_code=response.status_code,
            headers=response.headers,
            body=response.body,
            expires_at=self._clock() + ttl,
        )
        self._cache.set(key, entry.to_dict(), ttl)
        context = {"key": key, "ttl": ttl, "size": response.size}
        self._logger.debug("Response cached", extra={"event": "cache_store", "context": context})

    @contextmanager
    def _single_flight(self, key: str) -> Iterator[None]:
        with self._flights_lock:
            flight = self._flights.setdefault(key, _Flight())
            flight.waiters += 1
        try:
            with flight.lock:
                yield
        finally:
            with self._flights_lock:
                flight.waiters -= 1
                if flight.waiters == 0:
                    self._flights.pop(key, None)
