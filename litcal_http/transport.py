"""
httpx-backed transport for the Liturgical Calendar API.

The innermost layer of the pipeline: it performs the actual network call
and converts every connectivity/protocol failure into ``TransportError``.
Any status code, including 4xx/5xx, is returned as a normal ``Response``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from litcal_core.errors import TransportError
from litcal_core.types import HeaderValue, RequestBody, RequestHeaders, Response

logger = logging.getLogger(__name__)


def _has_header(headers: Mapping[str, str], name: str) -> bool:
    wanted = name.lower()
    return any(key.lower() == wanted for key in headers)


def _response_headers(headers: httpx.Headers) -> dict[str, HeaderValue]:
    collected: dict[str, HeaderValue] = {}
    for name in headers.keys():
        values = headers.get_list(name)
        collected[name] = values[0] if len(values) == 1 else tuple(values)
    return collected


class HttpxTransport:
    """
    Transport that sends requests with an ``httpx.Client``.

    Satisfies the ``HttpClient`` protocol.

    Args:
        timeout: Connect/read timeout in seconds (default: 30).
        client: Pre-configured ``httpx.Client``.  When given, the caller
            owns it and ``close()`` leaves it open.

    Example::

        with HttpxTransport(timeout=10.0) as transport:
            response = transport.get("https://api.example.org/calendars")
    """

    def __init__(self, timeout: float = 30.0, *, client: httpx.Client | None = None) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)

    def get(self, url: str, headers: RequestHeaders | None = None) -> Response:
        """Send a GET request."""
        return self._send("GET", url, headers=dict(headers or {}))

    def post(
        self,
        url: str,
        body: RequestBody,
        headers: RequestHeaders | None = None,
    ) -> Response:
        """
        Send a POST request.

        ``dict``/``list`` bodies are JSON-encoded and get a
        ``Content-Type: application/json`` header unless one is present.

        Raises:
            TransportError: If the body cannot be JSON-encoded or the
                request fails.
        """
        request_headers = dict(headers or {})
        content: bytes | str
        if isinstance(body, (bytes, str)):
            content = body
        else:
            try:
                content = json.dumps(body)
            except (TypeError, ValueError) as exc:
                raise TransportError(
                    f"Failed to encode request body as JSON: {exc}", url=url, method="POST"
                ) from exc
            if not _has_header(request_headers, "Content-Type"):
                request_headers["Content-Type"] = "application/json"
        return self._send("POST", url, headers=request_headers, content=content)

    def _send(self, method: str, url: str, **kwargs: Any) -> Response:
        try:
            raw = self._client.request(method, url, **kwargs)
            body = raw.read()
        except httpx.HTTPError as exc:
            logger.debug("transport: %s %s failed: %s", method, url, exc)
            raise TransportError(
                f"HTTP {method} request failed: {exc}", url=url, method=method
            ) from exc
        except httpx.InvalidURL as exc:
            raise TransportError(f"Invalid URL {url!r}: {exc}", url=url, method=method) from exc
        return Response(raw.status_code, _response_headers(raw.headers), body)

    def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
