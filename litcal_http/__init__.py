"""I/O layer of the Liturgical Calendar API client.

Modules:
    transport        httpx-backed HttpClient
    cache            InMemoryCache and RedisCache backends
    caching          GET response cache decorator
    retry            retry-with-backoff decorator
    circuit_breaker  three-state circuit breaker decorator
    logging_client   structured request/response logging decorator
    composer         fixed-order pipeline assembly
    metadata         process-wide calendar index cache
    metrics          Prometheus counters and histograms
"""

import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())
