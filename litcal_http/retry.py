"""Retry-with-backoff decorator for outbound API calls.

A transient ``TransportError`` or a response whose status is in the policy's
retryable set triggers a retry after a LINEAR or EXPONENTIAL delay.  When
retries run out the caller gets the last outcome unchanged: the exception is
re-raised, a retryable-status response is *returned* so the caller can
branch on it.

Usage::

    from litcal_core.config import RetryPolicy
    from litcal_http.retry import RetryClient

    client = RetryClient(transport, RetryPolicy(max_retries=3, base_delay_seconds=0.5))
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from litcal_core.config import RetryPolicy
from litcal_core.errors import TransportError
from litcal_core.types import HttpClient, RequestBody, RequestHeaders, Response
from litcal_http import metrics


class RetryClient:
    """
    Decorator retrying failed calls according to a ``RetryPolicy``.

    Satisfies the ``HttpClient`` protocol.  The inner client is invoked at
    most ``policy.max_retries + 1`` times per call.  Exceptions other than
    ``TransportError`` are not retried.

    Args:
        inner: Wrapped client (held by reference).
        policy: Retry policy; validated at construction.
        sleep: Blocking sleep taking seconds (injectable for tests).
        logger: Logger for retry events (default: module logger).

    Example::

        delays: list[float] = []
        client = RetryClient(flaky, RetryPolicy(base_delay_seconds=0.1), sleep=delays.append)
    """

    def __init__(
        self,
        inner: HttpClient,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._inner = inner
        self._policy = policy or RetryPolicy()
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)

    @property
    def policy(self) -> RetryPolicy:
        """Active retry policy."""
        return self._policy

    def get(self, url: str, headers: RequestHeaders | None = None) -> Response:
        """GET with retries."""
        return self._execute("GET", url, lambda: self._inner.get(url, headers))

    def post(
        self,
        url: str,
        body: RequestBody,
        headers: RequestHeaders | None = None,
    ) -> Response:
        """POST with retries."""
        return self._execute("POST", url, lambda: self._inner.post(url, body, headers))

    def _execute(self, method: str, url: str, send: Callable[[], Response]) -> Response:
        policy = self._policy
        attempts = policy.max_retries + 1

        for attempt in range(attempts):
            is_last = attempt == policy.max_retries
            try:
                response = send()
            except TransportError as exc:
                if is_last:
                    self._logger.error(
                        "HTTP %s %s failed after %d attempts: %s",
                        method,
                        url,
                        attempt + 1,
                        exc,
                        extra={
                            "event": "retry_exhausted",
                            "context": {"url": url, "attempts": attempt + 1, "error": str(exc)},
                        },
                    )
                    raise
                self._logger.warning(
                    "HTTP %s %s attempt %d/%d failed (%s), retrying",
                    method,
                    url,
                    attempt + 1,
                    attempts,
                    exc,
                    extra={
                        "event": "retry",
                        "context": {"url": url, "attempt": attempt + 1, "error": str(exc)},
                    },
                )
                self._backoff(method, attempt)
                continue

            status = response.status_code
            if status not in policy.retry_status_codes:
                if attempt > 0:
                    self._logger.info(
                        "HTTP %s %s succeeded after %d retries",
                        method,
                        url,
                        attempt,
                        extra={
                            "event": "retry_success",
                            "context": {"url": url, "attempts": attempt + 1, "status_code": status},
                        },
                    )
                return response

            if is_last:
                self._logger.warning(
                    "HTTP %s %s exhausted retries, returning status %d",
                    method,
                    url,
                    status,
                    extra={
                        "event": "retry_exhausted",
                        "context": {"url": url, "attempts": attempt + 1, "status_code": status},
                    },
                )
                return response

            self._logger.warning(
                "HTTP %s %s returned retryable status %d (attempt %d/%d)",
                method,
                url,
                status,
                attempt + 1,
                attempts,
                extra={
                    "event": "retry",
                    "context": {"url": url, "attempt": attempt + 1, "status_code": status},
                },
            )
            self._backoff(method, attempt)

        raise AssertionError("unreachable: the last attempt always returns or raises")

    def _backoff(self, method: str, attempt_index: int) -> None:
        delay = self._policy.delay_for(attempt_index)
        self._logger.debug(
            "Sleeping %.3fs before retry %d (%s backoff)",
            delay,
            attempt_index + 1,
            self._policy.backoff.value,
        )
        metrics.record_retry(method)
        self._sleep(delay)
