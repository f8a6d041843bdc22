"""
Shared type definitions for the HTTP layer.

This module defines the immutable ``Response`` model and the protocols that
every transport, decorator and cache backend must satisfy.  Decorators only
ever see these contracts, never each other's concrete classes.

Naming conventions:
- HttpClient: anything with ``get``/``post`` returning a ``Response``
- CacheBackend: key/value store with per-entry TTL
- RequestHeaders: plain ``dict``-like mapping of request header names to values
"""

from __future__ import annotations

import io
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Protocol, runtime_checkable

HeaderValue = str | tuple[str, ...]
"""A response header value; multi-valued headers are tuples."""

RequestHeaders = Mapping[str, str]
"""Request headers as passed by callers."""

RequestBody = str | bytes | Mapping[str, Any] | list[Any]
"""POST body: raw text/bytes, or a JSON-serializable structure."""


def _freeze_headers(headers: Mapping[str, Any] | None) -> Mapping[str, HeaderValue]:
    frozen: dict[str, HeaderValue] = {}
    for name, value in (headers or {}).items():
        if isinstance(value, (list, tuple)):
            frozen[str(name)] = tuple(str(v) for v in value)
        else:
            frozen[str(name)] = str(value)
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class Response:
    """
    Immutable HTTP response.

    The body is always fully buffered, so it can be read any number of
    times by any number of layers without coordination.

    Attributes:
        status_code: HTTP status code (100–599).
        headers: Read-only, insertion-ordered mapping of header names to
            values.  Multi-valued headers are tuples of strings.
        body: Complete response body.

    Example:
        >>> r = Response(200, {"Content-Type": "application/json"}, b'{"a": 1}')
        >>> r.json()
        {'a': 1}
    """

    status_code: int
    headers: Mapping[str, HeaderValue] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        """Validate status and freeze headers/body."""
        if not isinstance(self.status_code, int) or not 100 <= self.status_code <= 599:
            raise ValueError(f"status_code must be an int in [100, 599], got {self.status_code!r}")
        object.__setattr__(self, "headers", _freeze_headers(self.headers))
        body = self.body
        if isinstance(body, str):
            body = body.encode("utf-8")
        elif not isinstance(body, bytes):
            body = bytes(body)
        object.__setattr__(self, "body", body)

    @property
    def is_success(self) -> bool:
        """True for 2xx responses."""
        return 200 <= self.status_code < 300

    @property
    def size(self) -> int:
        """Body size in bytes."""
        return len(self.body)

    def header(self, name: str, default: HeaderValue | None = None) -> HeaderValue | None:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default

    def stream(self) -> io.BytesIO:
        """Return a fresh readable stream positioned at the start of the body."""
        return io.BytesIO(self.body)

    def text(self, encoding: str = "utf-8") -> str:
        """Decode the body as text."""
        return self.body.decode(encoding)

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            json.JSONDecodeError: If the body is not valid JSON.
        """
        return json.loads(self.body)


@runtime_checkable
class HttpClient(Protocol):
    """
    Transport contract shared by the transport and every decorator.

    Implementations raise ``TransportError`` only for connectivity or
    protocol failures.  A non-2xx result is returned as a normal
    ``Response``.
    """

    def get(self, url: str, headers: RequestHeaders | None = None) -> Response:
        """Perform a GET request."""
        ...

    def post(
        self,
        url: str,
        body: RequestBody,
        headers: RequestHeaders | None = None,
    ) -> Response:
        """Perform a POST request."""
        ...


@runtime_checkable
class CacheBackend(Protocol):
    """
    Key/value store consumed by the caching decorator.

    Any in-memory, file or distributed store satisfying this protocol is
    acceptable.  Values are JSON-compatible structures.
    """

    def get(self, key: str) -> Any | None:
        """Return the stored value or None on miss/expiry."""
        ...

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store *value* under *key*, expiring after *ttl_seconds* when given."""
        ...

    def delete(self, key: str) -> None:
        """Remove *key* if present."""
        ...
