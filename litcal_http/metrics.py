"""Prometheus metrics for the Liturgical Calendar HTTP layer.

Metrics:
    litcal_http_requests_total               Counter by method and outcome (status or error kind)
    litcal_http_request_latency_seconds      Histogram of caller-facing latency by method
    litcal_http_cache_hits_total             Counter of response cache hits
    litcal_http_cache_misses_total           Counter of response cache misses
    litcal_http_retries_total                Counter of scheduled retries by method
    litcal_http_circuit_breaker_trips_total  Times a circuit breaker tripped to OPEN
    litcal_http_circuit_breaker_rejected_total  Calls rejected while circuit is OPEN
    litcal_http_metadata_fetches_total       ``/calendars`` fetches by outcome

All metrics live on a private ``CollectorRegistry`` so importing this module
never pollutes the global default registry of the host application.

Usage::

    from litcal_http.metrics import get_metrics_response

    body, content_type = get_metrics_response()
"""

from __future__ import annotations

import time
from collections.abc import Callable

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

requests_total = Counter(
    "litcal_http_requests_total",
    "Outbound requests by method and outcome",
    ["method", "outcome"],
    registry=REGISTRY,
)

request_latency_seconds = Histogram(
    "litcal_http_request_latency_seconds",
    "Caller-facing request latency in seconds",
    ["method"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

cache_hits_total = Counter(
    "litcal_http_cache_hits_total",
    "Response cache hits",
    registry=REGISTRY,
)

cache_misses_total = Counter(
    "litcal_http_cache_misses_total",
    "Response cache misses",
    registry=REGISTRY,
)

retries_total = Counter(
    "litcal_http_retries_total",
    "Retries scheduled after a transient failure",
    ["method"],
    registry=REGISTRY,
)

circuit_breaker_trips_total = Counter(
    "litcal_http_circuit_breaker_trips_total",
    "CLOSED to OPEN transitions per breaker",
    ["breaker_name"],
    registry=REGISTRY,
)

circuit_breaker_rejected_total = Counter(
    "litcal_http_circuit_breaker_rejected_total",
    "Calls failed fast by an OPEN breaker without reaching the API",
    ["breaker_name"],
    registry=REGISTRY,
)

metadata_fetches_total = Counter(
    "litcal_http_metadata_fetches_total",
    "Network fetches of the /calendars index by outcome",
    ["outcome"],
    registry=REGISTRY,
)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def record_request(*, method: str, outcome: str, latency_seconds: float) -> None:
    """Record a completed outbound request.

    Args:
        method: HTTP method.
        outcome: Status code as a string, or the exception class name.
        latency_seconds: Caller-facing wall-clock time in seconds.
    """
    requests_total.labels(method=method, outcome=outcome).inc()
    request_latency_seconds.labels(method=method).observe(latency_seconds)


def record_cache_hit() -> None:
    """Increment response cache hit counter."""
    cache_hits_total.inc()


def record_cache_miss() -> None:
    """Increment response cache miss counter."""
    cache_misses_total.inc()


def record_retry(method: str) -> None:
    """Increment retry counter for *method*."""
    retries_total.labels(method=method).inc()


def record_circuit_trip(breaker_name: str) -> None:
    """Increment circuit breaker trip counter.

    Args:
        breaker_name: Name of the circuit breaker that tripped.
    """
    circuit_breaker_trips_total.labels(breaker_name=breaker_name).inc()


def record_circuit_rejected(breaker_name: str) -> None:
    """Increment circuit breaker rejected-call counter.

    Args:
        breaker_name: Name of the circuit breaker that rejected the call.
    """
    circuit_breaker_rejected_total.labels(breaker_name=breaker_name).inc()


def record_metadata_fetch(outcome: str) -> None:
    """Increment metadata fetch counter ("success", "http_error" or "invalid")."""
    metadata_fetches_total.labels(outcome=outcome).inc()


def get_metrics_response() -> tuple[bytes, str]:
    """Render the private registry for a /metrics endpoint.

    Returns:
        ``(body, content_type)`` ready to hand to any web framework.
    """
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


class LatencyTimer:
    """Times a block with an injectable clock.

    Args:
        clock: Monotonic time source in seconds (injectable for tests).

    Usage::

        with LatencyTimer() as t:
            response = inner.get(url)
        record_request(method="GET", outcome="200", latency_seconds=t.elapsed)
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        """Initialize timer."""
        self._clock = clock
        self._start: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> LatencyTimer:
        """Start timing."""
        self._start = self._clock()
        return self

    def __exit__(self, *_: object) -> None:
        """Stop timing and record elapsed."""
        self.elapsed = self._clock() - self._start

    @property
    def elapsed_ms(self) -> int:
        """Elapsed time in whole milliseconds."""
        return int(round(self.elapsed * 1000))
