"""
Process-wide cache of the parsed ``/calendars`` metadata index.

The index changes rarely, so it is fetched once per API base URL and kept
for the life of the process.  This sits above, and is independent of, the
per-request TTL cache in ``CachingClient``: once an index is cached, callers
get the same ``CalendarIndex`` object back without touching HTTP at all.

Lifecycle:
    fetch(url)          first call per URL fetches, later calls reuse
    invalidate_all()    drop everything (long-running processes)
    reset_for_testing() drop everything, including a lazily built client

Usage::

    from litcal_http.metadata import get_metadata_cache

    index = get_metadata_cache().fetch("https://litcal.johnromanodorazio.com/api/dev")
    index.national_calendar("IT")
"""

from __future__ import annotations

import json
import logging
import threading

from pydantic import ValidationError

from litcal_core.errors import MetadataError
from litcal_core.index import CalendarIndex
from litcal_core.types import HttpClient
from litcal_http import metrics

logger = logging.getLogger(__name__)

METADATA_PATH = "/calendars"
REQUIRED_FIELDS: tuple[str, ...] = ("national_calendars", "diocesan_calendars", "locales")


def metadata_url(base_url: str) -> str:
    """Return the metadata endpoint for an API base URL."""
    return base_url.rstrip("/") + METADATA_PATH


def parse_metadata(payload: bytes, url: str) -> CalendarIndex:
    """
    Validate and parse a ``/calendars`` response body.

    Args:
        payload: Raw response body.
        url: Endpoint the body came from (for error context).

    Returns:
        The parsed index.

    Raises:
        MetadataError: If the body is not JSON, has no ``litcal_metadata``
            object, lacks a required field, or fails model validation.
    """
    try:
        document = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MetadataError(f"Invalid JSON from {url}: {exc}", url=url) from exc

    if not isinstance(document, dict):
        raise MetadataError(f"Expected a JSON object from {url}", url=url)

    metadata = document.get("litcal_metadata")
    if not isinstance(metadata, dict):
        raise MetadataError(f"Missing 'litcal_metadata' object in {url}", url=url)

    missing = [name for name in REQUIRED_FIELDS if name not in metadata]
    if missing:
        raise MetadataError(
            f"Missing required field(s) {', '.join(missing)} in {url}",
            url=url,
        )

    try:
        return CalendarIndex.model_validate(metadata)
    except ValidationError as exc:
        raise MetadataError(f"Malformed calendar index from {url}: {exc}", url=url) from exc


class MetadataCache:
    """
    Thread-safe store of one ``CalendarIndex`` per API base URL.

    The first ``fetch`` for a URL is exactly-once: concurrent callers for
    the same URL wait on a per-URL lock and then read the stored index.
    A stored index is never replaced, only dropped by ``invalidate_all``.

    Args:
        client: HTTP client used for fetches.  When omitted a production
            pipeline is built lazily on the first fetch.
    """

    def __init__(self, client: HttpClient | None = None) -> None:
        self._injected_client = client
        self._client = client
        self._indexes: dict[str, CalendarIndex] = {}
        self._url_locks: dict[str, threading.Lock] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def fetch(self, base_url: str) -> CalendarIndex:
        """
        Return the index for *base_url*, fetching it on first use.

        Args:
            base_url: API base URL; a trailing ``/`` is ignored.

        Returns:
            The cached ``CalendarIndex``.

        Raises:
            MetadataError: The endpoint answered non-2xx or with a bad body.
                Nothing is cached, so the next call tries again.
            TransportError, CircuitOpenError: Propagated from the client.
        """
        key = base_url.rstrip("/")

        index = self._indexes.get(key)
        if index is not None:
            return index

        with self._url_lock(key):
            # Another thread may have finished the fetch while we waited
            index = self._indexes.get(key)
            if index is not None:
                return index

            with self._lock:
                generation = self._generation
            index = self._load(key)
            with self._lock:
                if generation != self._generation:
                    # invalidate_all ran while this load was in flight
                    logger.info("Not caching metadata for %s loaded before invalidation", key)
                    return index
                return self._indexes.setdefault(key, index)

    def is_cached(self, base_url: str) -> bool:
        """True if an index for *base_url* is held."""
        return base_url.rstrip("/") in self._indexes

    def invalidate_all(self) -> None:
        """Drop every cached index; the next fetch per URL goes to HTTP."""
        with self._lock:
            count = len(self._indexes)
            self._indexes.clear()
            self._generation += 1
        logger.info("Metadata cache invalidated (%d index(es) dropped)", count)

    def reset_for_testing(self) -> None:
        """Drop every index, the per-URL locks and any lazily built client."""
        with self._lock:
            self._indexes.clear()
            self._url_locks.clear()
            self._generation += 1
            self._client = self._injected_client

    def _url_lock(self, key: str) -> threading.Lock:
        with self._lock:
            return self._url_locks.setdefault(key, threading.Lock())

    def _http(self) -> HttpClient:
        with self._lock:
            if self._client is None:
                # Imported here so the singleton does not build a pipeline at import time
                from litcal_http.composer import create_production_client

                self._client = create_production_client()
            return self._client

    def _load(self, key: str) -> CalendarIndex:
        url = metadata_url(key)
        logger.info("Fetching calendar metadata from %s", url)

        client = self._http()
        headers = {"Accept": "application/json"}
        response = client.get(url, headers)
        if not response.is_success:
            metrics.record_metadata_fetch("http_error")
            raise MetadataError(
                f"Metadata request to {url} returned HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )

        try:
            index = parse_metadata(response.body, url)
        except MetadataError:
            metrics.record_metadata_fetch("invalid")
            logger.warning("Rejected calendar metadata from %s", url, exc_info=True)
            # A 2xx reply may be held by a response cache below us
            evict = getattr(client, "evict", None)
            if callable(evict):
                evict(url, headers)
            raise

        metrics.record_metadata_fetch("success")
        logger.info(
            "Cached calendar metadata for %s (%d national, %d diocesan, %d locales)",
            key,
            len(index.national_calendars),
            len(index.diocesan_calendars),
            len(index.locales),
        )
        return index


_metadata_cache: MetadataCache | None = None
_singleton_lock = threading.Lock()


def get_metadata_cache() -> MetadataCache:
    """
    Return the process-wide ``MetadataCache`` singleton.

    Created on first call and reused thereafter.
    """
    global _metadata_cache  # noqa: PLW0603
    with _singleton_lock:
        if _metadata_cache is None:
            _metadata_cache = MetadataCache()
        return _metadata_cache


def reset_metadata_cache_for_testing(client: HttpClient | None = None) -> MetadataCache:
    """
    Replace the singleton with a fresh, empty cache.

    Args:
        client: HTTP client for the new cache (default: lazy production client).

    Returns:
        The new singleton.
    """
    global _metadata_cache  # noqa: PLW0603
    with _singleton_lock:
        _metadata_cache = MetadataCache(client)
        return _metadata_cache
