"""Circuit breaker decorator for calls to the Liturgical Calendar API.

Prevents cascading failures when the API is degraded.  The breaker has
three states:

    CLOSED    — Normal operation. Requests pass through.
    OPEN      — Service is down. Requests fail immediately with
                ``CircuitOpenError`` without calling the inner client.
    HALF-OPEN — Testing recovery. Requests pass; ``success_threshold``
                successes close the circuit, any failure reopens it.

State machine::

    CLOSED ──(F failures)──→ OPEN ──(timeout, checked on next call)──→ HALF-OPEN
      ↑                                                                  │
      └───────────────────────(S successes)─────────────────────────────┘
                                               └──(any failure)──→ OPEN

A ``TransportError`` always counts as a failure.  Responses whose status is
in ``failure_status_codes`` count as failures too, but are still returned to
the caller unmodified.

Usage::

    from litcal_core.config import BreakerConfig
    from litcal_http.circuit_breaker import CircuitBreakerClient

    client = CircuitBreakerClient(inner, BreakerConfig(failure_threshold=3))
    try:
        response = client.get(url)
    except CircuitOpenError:
        ...  # render "service unavailable"
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from litcal_core.config import BreakerConfig
from litcal_core.errors import CircuitOpenError, TransportError
from litcal_core.types import HttpClient, RequestBody, RequestHeaders, Response
from litcal_http import metrics

MAX_STATE_CHANGES = 100


class CircuitState(Enum):
    """Breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitStats:
    """Lifetime call counters for one breaker."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0  # short-circuited while OPEN
    # Most recent transitions only
    state_changes: deque[tuple[str, float]] = field(
        default_factory=lambda: deque(maxlen=MAX_STATE_CHANGES)
    )

    def record_state_change(self, new_state: CircuitState, at: float) -> None:
        """Append *new_state* entered at clock time *at*."""
        self.state_changes.append((new_state.value, at))


class CircuitBreakerClient:
    """Thread-safe circuit breaker decorator.

    Satisfies the ``HttpClient`` protocol.  Counter updates and state
    transitions happen under a lock; the inner call runs outside it.

    Args:
        inner: Wrapped client (held by reference).
        config: Thresholds, recovery timeout and failure statuses.
        clock: Monotonic time source in seconds (injectable for tests).
        logger: Logger for state transitions (default: module logger).

    Example::

        breaker = CircuitBreakerClient(transport, BreakerConfig(name="litcal", failure_threshold=3))
        breaker.get("https://litcal.johnromanodorazio.com/api/dev/calendars")
    """

    def __init__(
        self,
        inner: HttpClient,
        config: BreakerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        self._inner = inner
        self._config = config or BreakerConfig()
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float | None = None
        self._lock = threading.Lock()
        self.stats = CircuitStats()

        self._logger.info(
            "CircuitBreaker '%s' initialized (threshold=%d, timeout=%.0fs, successes=%d)",
            self.name,
            self._config.failure_threshold,
            self._config.recovery_timeout_seconds,
            self._config.success_threshold,
        )

    @property
    def name(self) -> str:
        """Breaker name used in logs, metrics and errors."""
        return self._config.name

    @property
    def state(self) -> CircuitState:
        """Current state, read under the lock."""
        with self._lock:
            return self._state

    @property
    def is_open(self) -> bool:
        """True while calls are being rejected."""
        return self.state == CircuitState.OPEN

    @property
    def failure_count(self) -> int:
        """Consecutive failures recorded."""
        with self._lock:
            return self._failure_count

    @property
    def success_count(self) -> int:
        """Consecutive HALF-OPEN successes recorded."""
        with self._lock:
            return self._success_count

    def get(self, url: str, headers: RequestHeaders | None = None) -> Response:
        """GET through the breaker."""
        return self._call("GET", url, lambda: self._inner.get(url, headers))

    def post(
        self,
        url: str,
        body: RequestBody,
        headers: RequestHeaders | None = None,
    ) -> Response:
        """POST through the breaker."""
        return self._call("POST", url, lambda: self._inner.post(url, body, headers))

    def _call(self, method: str, url: str, send: Callable[[], Response]) -> Response:
        self._before_call(method, url)

        # Inner call runs unlocked so slow requests do not serialize callers
        try:
            response = send()
        except TransportError:
            with self._lock:
                self._on_failure()
            raise

        if response.status_code in self._config.failure_status_codes:
            self._logger.warning(
                "CircuitBreaker '%s': failure status %d from %s %s",
                self.name,
                response.status_code,
                method,
                url,
            )
            with self._lock:
                self._on_failure()
        else:
            with self._lock:
                self._on_success()
        return response

    def _before_call(self, method: str, url: str) -> None:
        with self._lock:
            self.stats.total_calls += 1

            if self._state == CircuitState.OPEN:
                elapsed = self._clock() - (self._last_failure_time or 0.0)
                if elapsed >= self._config.recovery_timeout_seconds:
                    # Let this call through as a probe
                    self._success_count = 0
                    self._transition_to(CircuitState.HALF_OPEN)
                else:
                    self.stats.rejected_calls += 1
                    reset_in = self._config.recovery_timeout_seconds - elapsed
                    self._logger.warning(
                        "CircuitBreaker '%s' OPEN: %s %s blocked (failures=%d)",
                        self.name,
                        method,
                        url,
                        self._failure_count,
                    )
                    metrics.record_circuit_rejected(self.name)
                    raise CircuitOpenError(self.name, max(0.0, reset_in))

    def _transition_to(self, new_state: CircuitState) -> None:
        """Switch state and log the edge; caller holds the lock."""
        old_state = self._state
        self._state = new_state
        self.stats.record_state_change(new_state, self._clock())
        self._logger.warning(
            "CircuitBreaker '%s': %s → %s",
            self.name,
            old_state.value.upper(),
            new_state.value.upper(),
        )

    def _on_success(self) -> None:
        """Count a success; caller holds the lock."""
        self.stats.successful_calls += 1

        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self._config.success_threshold:
                successes = self._success_count
                self._failure_count = 0
                self._success_count = 0
                self._last_failure_time = None
                self._transition_to(CircuitState.CLOSED)
                self._logger.info(
                    "CircuitBreaker '%s': service recovered after %d successes",
                    self.name,
                    successes,
                )
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def _on_failure(self) -> None:
        """Count a failure; caller holds the lock."""
        self._failure_count += 1
        self._last_failure_time = self._clock()
        self.stats.failed_calls += 1

        if self._state == CircuitState.HALF_OPEN:
            # Probe failed, go back to OPEN and restart the timer
            self._success_count = 0
            self._transition_to(CircuitState.OPEN)
        elif self._state == CircuitState.CLOSED:
            if self._failure_count >= self._config.failure_threshold:
                self._transition_to(CircuitState.OPEN)
                metrics.record_circuit_trip(self.name)
                self._logger.error(
                    "CircuitBreaker '%s': TRIPPED after %d failures",
                    self.name,
                    self._failure_count,
                )

    def reset(self) -> None:
        """Force CLOSED and clear all counters, e.g. after an API outage is resolved."""
        with self._lock:
            self._failure_count = 0
            self._success_count = 0
            self._last_failure_time = None
            self._transition_to(CircuitState.CLOSED)

    def status(self) -> dict[str, Any]:
        """Point-in-time view for health endpoints and logs.

        Returns:
            Dict of state, counters, thresholds and lifetime stats.
        """
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "success_count": self._success_count,
                "failure_threshold": self._config.failure_threshold,
                "success_threshold": self._config.success_threshold,
                "recovery_timeout_seconds": self._config.recovery_timeout_seconds,
                "last_failure_ago_seconds": (
                    round(self._clock() - self._last_failure_time, 1)
                    if self._last_failure_time is not None
                    else None
                ),
                "stats": {
                    "total": self.stats.total_calls,
                    "success": self.stats.successful_calls,
                    "failed": self.stats.failed_calls,
                    "rejected": self.stats.rejected_calls,
                },
            }
