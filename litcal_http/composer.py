"""
Pipeline assembly for the outbound HTTP stack.

The order is fixed, outermost first::

    LoggingClient → CircuitBreakerClient → RetryClient → CachingClient → transport

Logging is outermost so it sees the latency and final outcome the caller
experiences.  Because the breaker sits outside the cache, an OPEN circuit
rejects calls before the cache is consulted: a response that is still in
the cache is *not* served while the circuit is open.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from litcal_core.config import ClientConfig
from litcal_core.types import CacheBackend, HttpClient, RequestBody, RequestHeaders, Response
from litcal_http.cache import InMemoryCache, RedisCache
from litcal_http.caching import CachingClient
from litcal_http.circuit_breaker import CircuitBreakerClient
from litcal_http.logging_client import LoggingClient
from litcal_http.retry import RetryClient
from litcal_http.transport import HttpxTransport

PIPELINE_ORDER: tuple[str, ...] = (
    "logging_client",
    "circuit_breaker",
    "retry",
    "caching",
    "transport",
)
"""Layer names, outermost first."""


@dataclass(frozen=True)
class Pipeline:
    """
    An assembled client plus handles on every layer.

    ``get``/``post`` delegate to the outermost layer; the layer attributes
    exist for monitoring (``circuit_breaker.status()``) and tests.
    """

    logging_client: LoggingClient
    circuit_breaker: CircuitBreakerClient
    retry: RetryClient
    caching: CachingClient
    transport: HttpClient

    @property
    def client(self) -> HttpClient:
        """The outermost layer."""
        return self.logging_client

    def layers(self) -> tuple[HttpClient, ...]:
        """All layers in ``PIPELINE_ORDER``."""
        return tuple(getattr(self, name) for name in PIPELINE_ORDER)

    def get(self, url: str, headers: RequestHeaders | None = None) -> Response:
        """GET through the whole pipeline."""
        return self.logging_client.get(url, headers)

    def post(
        self,
        url: str,
        body: RequestBody,
        headers: RequestHeaders | None = None,
    ) -> Response:
        """POST through the whole pipeline."""
        return self.logging_client.post(url, body, headers)

    def evict(self, url: str, headers: RequestHeaders | None = None) -> None:
        """Drop a cached GET response, e.g. one the caller found unusable."""
        self.caching.evict(url, headers)

    def close(self) -> None:
        """Close the transport when it holds network resources."""
        close = getattr(self.transport, "close", None)
        if callable(close):
            close()


def build_pipeline(
    transport: HttpClient,
    config: ClientConfig | None = None,
    *,
    cache: CacheBackend | None = None,
    logger: logging.Logger | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Pipeline:
    """
    Wrap *transport* in the decorators in ``PIPELINE_ORDER``.

    Args:
        transport: Innermost client performing the network call.
        config: Settings for every layer (default: ``ClientConfig()``).
        cache: Response cache backend (default: a new ``InMemoryCache``).
        logger: Logger shared by all layers (default: one per module).
        sleep: Retry sleep function.
        clock: Monotonic clock for the breaker and latency measurement.

    Returns:
        The assembled ``Pipeline``.
    """
    config = config or ClientConfig()
    caching = CachingClient(
        transport,
        cache if cache is not None else InMemoryCache(),
        config.cache,
        logger=logger,
    )
    retry = RetryClient(caching, config.retry, sleep=sleep, logger=logger)
    breaker = CircuitBreakerClient(retry, config.breaker, clock=clock, logger=logger)
    outer = LoggingClient(breaker, config.redaction, logger=logger, clock=clock)
    return Pipeline(
        logging_client=outer,
        circuit_breaker=breaker,
        retry=retry,
        caching=caching,
        transport=transport,
    )


def create_production_client(
    config: ClientConfig | None = None,
    *,
    logger: logging.Logger | None = None,
) -> Pipeline:
    """
    Build an httpx transport and full pipeline from configuration.

    Uses ``ClientConfig.from_env()`` when no config is given, and a Redis
    response cache when ``config.redis_url`` is set.

    Args:
        config: Client configuration.
        logger: Logger shared by all layers.

    Returns:
        The assembled ``Pipeline``.
    """
    config = config or ClientConfig.from_env()
    cache: CacheBackend
    if config.redis_url:
        cache = RedisCache.from_url(config.redis_url)
    else:
        cache = InMemoryCache()
    transport = HttpxTransport(timeout=config.timeout_seconds)
    (logger or logging.getLogger(__name__)).info(
        "Production client ready (api=%s, retries=%d, breaker=%d/%.0fs, cache=%s)",
        config.api_url,
        config.retry.max_retries,
        config.breaker.failure_threshold,
        config.breaker.recovery_timeout_seconds,
        "redis" if config.redis_url else "memory",
    )
    return build_pipeline(transport, config, cache=cache, logger=logger)
