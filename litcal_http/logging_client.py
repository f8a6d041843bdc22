"""Structured request/response logging decorator.

Emits three kinds of events through stdlib ``logging``, each carrying its
structured fields in ``record.event`` / ``record.context``:

    request   method, url, headers (sensitive values masked), POST body size
    response  method, url, status_code, duration_ms, response_size
    error     method, url, error, exception kind, duration_ms

The decorator is a pure observer: it returns exactly what the inner client
returned and re-raises exactly what it raised.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any

from litcal_core.config import RedactionConfig
from litcal_core.types import HttpClient, RequestBody, RequestHeaders, Response
from litcal_http import metrics
from litcal_http.metrics import LatencyTimer


def redact_headers(headers: RequestHeaders | None, redaction: RedactionConfig) -> dict[str, str]:
    """
    Copy *headers* with sensitive values replaced by the redaction marker.

    Args:
        headers: Request headers.
        redaction: Which names are sensitive (case-insensitive).

    Returns:
        New dict with the same keys, original casing preserved.
    """
    return {
        name: redaction.marker if redaction.is_sensitive(name) else value
        for name, value in (headers or {}).items()
    }


def _body_size(body: RequestBody) -> int:
    if isinstance(body, bytes):
        return len(body)
    if isinstance(body, str):
        return len(body.encode("utf-8"))
    try:
        return len(json.dumps(body).encode("utf-8"))
    except (TypeError, ValueError):
        return 0


class LoggingClient:
    """
    Decorator logging every call made through it.

    Satisfies the ``HttpClient`` protocol.  Sits outermost in the pipeline,
    so durations are the latency the caller actually experienced.

    Args:
        inner: Wrapped client (held by reference).
        redaction: Header redaction rules.
        logger: Target logger (default: module logger).
        clock: Monotonic time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        inner: HttpClient,
        redaction: RedactionConfig | None = None,
        *,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._inner = inner
        self._redaction = redaction or RedactionConfig()
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock

    def get(self, url: str, headers: RequestHeaders | None = None) -> Response:
        """GET with request/response/error logging."""
        context = {"method": "GET", "url": url, "headers": redact_headers(headers, self._redaction)}
        return self._observe("GET", url, context, lambda: self._inner.get(url, headers))

    def post(
        self,
        url: str,
        body: RequestBody,
        headers: RequestHeaders | None = None,
    ) -> Response:
        """POST with request/response/error logging."""
        context = {
            "method": "POST",
            "url": url,
            "headers": redact_headers(headers, self._redaction),
            "body_size": _body_size(body),
        }
        return self._observe("POST", url, context, lambda: self._inner.post(url, body, headers))

    def _observe(
        self,
        method: str,
        url: str,
        request_context: dict[str, Any],
        send: Callable[[], Response],
    ) -> Response:
        self._logger.info(
            "HTTP %s request %s",
            method,
            url,
            extra={"event": "request", "context": request_context},
        )

        timer = LatencyTimer(self._clock)
        try:
            with timer:
                response = send()
        except Exception as exc:
            kind = type(exc).__name__
            self._logger.error(
                "HTTP %s %s failed after %dms: %s",
                method,
                url,
                timer.elapsed_ms,
                exc,
                extra={
                    "event": "error",
                    "context": {
                        "method": method,
                        "url": url,
                        "error": str(exc),
                        "exception": kind,
                        "duration_ms": timer.elapsed_ms,
                    },
                },
            )
            metrics.record_request(method=method, outcome=kind, latency_seconds=timer.elapsed)
            raise

        self._logger.info(
            "HTTP %s response %s %d (%dms)",
            method,
            url,
            response.status_code,
            timer.elapsed_ms,
            extra={
                "event": "response",
                "context": {
                    "method": method,
                    "url": url,
                    "status_code": response.status_code,
                    "duration_ms": timer.elapsed_ms,
                    "response_size": response.size,
                },
            },
        )
        metrics.record_request(
            method=method, outcome=str(response.status_code), latency_seconds=timer.elapsed
        )
        return response
