"""
Configuration dataclasses for the HTTP resilience stack.

These immutable config objects replace ad-hoc defaults scattered across
constructors.  Every object validates itself in ``__post_init__`` and raises
``ConfigurationError`` immediately, so a bad value can never surface later
as a strange runtime behavior.
"""

from __future__ import annotations

import math
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from dotenv import load_dotenv

from litcal_core.errors import ConfigurationError

DEFAULT_API_URL = "https://litcal.johnromanodorazio.com/api/dev"

DEFAULT_RETRY_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

# Headers that change the representation returned by the calendar API:
# Accept picks json/xml/yaml/ics, Accept-Language picks the locale.
DEFAULT_CACHE_RELEVANT_HEADERS: tuple[str, ...] = ("accept", "accept-language")

DEFAULT_REDACTED_HEADERS: frozenset[str] = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "api-key",
        "x-api-key",
        "cookie",
        "set-cookie",
    }
)

DEFAULT_REDACTED_SUBSTRINGS: tuple[str, ...] = ("key", "secret", "token")


class BackoffMode(Enum):
    """Spacing between retry attempts."""

    LINEAR = "linear"
    EXPONENTIAL = "exponential"


def _check_status_codes(codes: Iterable[int], what: str) -> frozenset[int]:
    result = frozenset(codes)
    bad = sorted(
        (c for c in result if not isinstance(c, int) or not 100 <= c <= 599),
        key=repr,
    )
    if bad:
        raise ConfigurationError(f"{what} must be HTTP status codes in [100, 599], got {bad}")
    return result


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry behavior for ``RetryClient``.

    Attributes:
        max_retries: Retries after the first attempt (0 disables retrying).
        base_delay_seconds: Delay before the first retry.  Must be positive.
        backoff: LINEAR keeps the delay constant, EXPONENTIAL doubles it
            on every retry.
        retry_status_codes: Response statuses treated as transient failures.

    Example:
        >>> RetryPolicy(max_retries=3, base_delay_seconds=0.1).delay_for(2)
        0.4
    """

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    backoff: BackoffMode = BackoffMode.EXPONENTIAL
    retry_status_codes: frozenset[int] = DEFAULT_RETRY_STATUS_CODES

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {self.max_retries!r}")
        if not math.isfinite(self.base_delay_seconds) or self.base_delay_seconds <= 0:
            raise ConfigurationError(
                f"base_delay_seconds must be positive and finite, got {self.base_delay_seconds!r}"
            )
        if not isinstance(self.backoff, BackoffMode):
            raise ConfigurationError(f"backoff must be a BackoffMode, got {self.backoff!r}")
        object.__setattr__(
            self,
            "retry_status_codes",
            _check_status_codes(self.retry_status_codes, "retry_status_codes"),
        )

    def delay_for(self, attempt_index: int) -> float:
        """Seconds to wait before retry number *attempt_index* (0-based)."""
        if self.backoff is BackoffMode.EXPONENTIAL:
            return self.base_delay_seconds * (2**attempt_index)
        return self.base_delay_seconds


@dataclass(frozen=True)
class BreakerConfig:
    """
    Circuit breaker thresholds.

    Attributes:
        name: Label used in logs, metrics and ``CircuitOpenError``.
        failure_threshold: Consecutive failures that trip CLOSED -> OPEN.
        recovery_timeout_seconds: Time spent OPEN before a probe is allowed.
        success_threshold: HALF_OPEN successes needed to close again.
        failure_status_codes: Response statuses that count as failures
            (the response is still returned to the caller).
    """

    name: str = "litcal_api"
    failure_threshold: int = 5
    recovery_timeout_seconds: float = 60.0
    success_threshold: int = 2
    failure_status_codes: frozenset[int] = frozenset()

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.failure_threshold < 1:
            raise ConfigurationError(
                f"failure_threshold must be >= 1, got {self.failure_threshold!r}"
            )
        if self.success_threshold < 1:
            raise ConfigurationError(
                f"success_threshold must be >= 1, got {self.success_threshold!r}"
            )
        if self.recovery_timeout_seconds < 0:
            raise ConfigurationError(
                f"recovery_timeout_seconds must be >= 0, got {self.recovery_timeout_seconds!r}"
            )
        object.__setattr__(
            self,
            "failure_status_codes",
            _check_status_codes(self.failure_status_codes, "failure_status_codes"),
        )


@dataclass(frozen=True)
class CacheConfig:
    """
    Response cache settings for ``CachingClient``.

    Attributes:
        ttl_seconds: Lifetime of a cached 2xx GET response.
        relevant_headers: Request header names (case-insensitive) that are
            part of the cache key.  All other headers are ignored.
    """

    ttl_seconds: float = 3600.0
    relevant_headers: tuple[str, ...] = DEFAULT_CACHE_RELEVANT_HEADERS

    def __post_init__(self) -> None:
        """Validate and normalize header names."""
        if self.ttl_seconds <= 0:
            raise ConfigurationError(f"ttl_seconds must be positive, got {self.ttl_seconds!r}")
        names = tuple(sorted({h.strip().lower() for h in self.relevant_headers}))
        object.__setattr__(self, "relevant_headers", names)


@dataclass(frozen=True)
class RedactionConfig:
    """
    Which request headers are masked in logs.

    Attributes:
        headers: Exact header names to mask (case-insensitive).
        substrings: Any header whose lower-cased name contains one of these
            is masked as well.
        marker: Replacement value.
    """

    headers: frozenset[str] = DEFAULT_REDACTED_HEADERS
    substrings: tuple[str, ...] = DEFAULT_REDACTED_SUBSTRINGS
    marker: str = "***REDACTED***"

    def __post_init__(self) -> None:
        """Normalize names to lower case."""
        object.__setattr__(self, "headers", frozenset(h.lower() for h in self.headers))
        object.__setattr__(self, "substrings", tuple(s.lower() for s in self.substrings if s))

    def is_sensitive(self, name: str) -> bool:
        """True if header *name* must be masked."""
        lowered = name.lower()
        return lowered in self.headers or any(s in lowered for s in self.substrings)


@dataclass(frozen=True)
class ClientConfig:
    """
    Complete configuration for a production pipeline.

    Attributes:
        api_url: Base URL of the Liturgical Calendar API.
        timeout_seconds: Transport timeout for connect/read.
        retry: Retry policy.
        breaker: Circuit breaker thresholds.
        cache: Response cache settings.
        redaction: Log redaction settings.
        redis_url: When set, the response cache is stored in Redis.
    """

    api_url: str = DEFAULT_API_URL
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    breaker: BreakerConfig = field(default_factory=BreakerConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    redaction: RedactionConfig = field(default_factory=RedactionConfig)
    redis_url: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.api_url.strip():
            raise ConfigurationError("api_url must be a non-empty string")
        if self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"timeout_seconds must be positive, got {self.timeout_seconds!r}"
            )
        object.__setattr__(self, "api_url", self.api_url.strip().rstrip("/"))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """
        Build a configuration from environment variables.

        Loads a ``.env`` file first when reading the real process
        environment.  Unset variables keep their defaults.

        Args:
            environ: Mapping to read instead of ``os.environ`` (tests).

        Returns:
            A validated ``ClientConfig``.

        Raises:
            ConfigurationError: If a variable holds an invalid value.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        retry_defaults = RetryPolicy()
        breaker_defaults = BreakerConfig()
        backoff_raw = environ.get("LITCAL_BACKOFF", retry_defaults.backoff.value).strip().lower()
        try:
            backoff = BackoffMode(backoff_raw)
        except ValueError:
            raise ConfigurationError(
                f"LITCAL_BACKOFF must be 'linear' or 'exponential', got {backoff_raw!r}"
            ) from None

        return cls(
            api_url=environ.get("LITCAL_API_URL", DEFAULT_API_URL),
            timeout_seconds=_env_float(environ, "LITCAL_HTTP_TIMEOUT", 30.0),
            retry=RetryPolicy(
                max_retries=_env_int(environ, "LITCAL_MAX_RETRIES", retry_defaults.max_retries),
                base_delay_seconds=_env_float(
                    environ, "LITCAL_RETRY_DELAY", retry_defaults.base_delay_seconds
                ),
                backoff=backoff,
            ),
            breaker=BreakerConfig(
                failure_threshold=_env_int(
                    environ, "LITCAL_FAILURE_THRESHOLD", breaker_defaults.failure_threshold
                ),
                recovery_timeout_seconds=_env_float(
                    environ, "LITCAL_RECOVERY_TIMEOUT", breaker_defaults.recovery_timeout_seconds
                ),
                success_threshold=_env_int(
                    environ, "LITCAL_SUCCESS_THRESHOLD", breaker_defaults.success_threshold
                ),
            ),
            cache=CacheConfig(ttl_seconds=_env_float(environ, "LITCAL_CACHE_TTL", 3600.0)),
            redis_url=environ.get("REDIS_URL") or None,
        )


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


# Pre-defined configurations for common use cases

NO_RETRY_POLICY = RetryPolicy(max_retries=0)
"""Single attempt, no retries."""

DEFAULT_CONFIG = ClientConfig()
"""Production defaults: 3 exponential retries, breaker 5/60s/2, 1h cache."""
