"""
Error taxonomy for the Liturgical Calendar HTTP layer.

Only connectivity problems, open circuits, bad configuration and broken
metadata are errors.  A non-2xx response is an ordinary ``Response`` and is
never raised.
"""

from __future__ import annotations


class LitCalHttpError(Exception):
    """Base class for errors raised by the HTTP layer."""


class TransportError(LitCalHttpError):
    """The request could not be completed (timeout, DNS, refused, protocol).

    Args:
        message: Human readable description.
        url: Target URL, if known.
        method: HTTP method, if known.
    """

    def __init__(self, message: str, *, url: str | None = None, method: str | None = None) -> None:
        self.url = url
        self.method = method
        super().__init__(message)


class CircuitOpenError(LitCalHttpError):
    """Raised when a call is attempted while the circuit is OPEN.

    The inner client was not invoked.  Callers should treat this as
    "service temporarily unavailable".

    Args:
        name: Circuit breaker name for context.
        reset_in_seconds: Approximate seconds until the circuit will probe again.
    """

    def __init__(self, name: str, reset_in_seconds: float) -> None:
        self.name = name
        self.reset_in_seconds = reset_in_seconds
        super().__init__(
            f"Circuit '{name}' is OPEN: service temporarily unavailable. "
            f"Will probe again in ~{reset_in_seconds:.0f}s."
        )


class ConfigurationError(LitCalHttpError, ValueError):
    """Invalid constructor or environment configuration.

    Raised immediately at construction time, never deferred to call time.
    """


class MetadataError(LitCalHttpError):
    """The ``/calendars`` index could not be fetched or parsed.

    Args:
        message: Human readable description.
        url: The metadata endpoint URL.
        status_code: HTTP status when the failure was a non-2xx response.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)
