"""
Shared fixtures for the test suite.

Centralizes the scripted fake client and the controllable clock so
individual test files don't need to repeat that boilerplate.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

import pytest

from litcal_core.types import RequestBody, RequestHeaders, Response
from litcal_http.metadata import reset_metadata_cache_for_testing

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

API_URL = "https://api.example.org"
"""Base URL used by tests; nothing is ever sent to it."""

SAMPLE_METADATA: dict[str, Any] = {
    "litcal_metadata": {
        "national_calendars": [
            {
                "calendar_id": "IT",
                "locales": ["it_IT"],
                "missals": ["IT_1983"],
                "settings": {
                    "epiphany": "JAN6",
                    "ascension": "SUNDAY",
                    "corpus_christi": "SUNDAY",
                    "eternal_high_priest": False,
                },
                "wider_region": "Europe",
                "dioceses": ["roma_it"],
            },
            {
                "calendar_id": "US",
                "locales": ["en_US", "es_US"],
                "missals": ["US_2011"],
                "settings": {
                    "epiphany": "SUNDAY_JAN2_JAN8",
                    "ascension": "SUNDAY",
                    "corpus_christi": "SUNDAY",
                    "eternal_high_priest": False,
                },
                "wider_region": "Americas",
                "dioceses": ["boston_us"],
            },
        ],
        "national_calendars_keys": ["IT", "US"],
        "diocesan_calendars": [
            {
                "calendar_id": "roma_it",
                "diocese": "Diocesi di Roma",
                "nation": "IT",
                "locales": ["it_IT"],
                "timezone": "Europe/Rome",
                "group": "Lazio",
            },
            {
                "calendar_id": "boston_us",
                "diocese": "Archdiocese of Boston",
                "nation": "US",
                "locales": ["en_US"],
                "timezone": "America/New_York",
            },
        ],
        "diocesan_calendars_keys": ["roma_it", "boston_us"],
        "diocesan_groups": [{"group_name": "Lazio", "dioceses": ["roma_it"]}],
        "wider_regions": [{"name": "Europe", "locales": ["it_IT"], "api_path": "/data/wider"}],
        "wider_regions_keys": ["Europe"],
        "locales": ["en", "en_US", "es_US", "it", "it_IT", "la"],
    }
}
"""Trimmed ``/calendars`` document with the shape the API returns."""


# ---------------------------------------------------------------------------
# Fake HTTP client
# ---------------------------------------------------------------------------


@dataclass
class Call:
    """One call received by ``FakeClient``."""

    method: str
    url: str
    headers: RequestHeaders | None
    body: RequestBody | None = None


@dataclass
class FakeClient:
    """Scripted ``HttpClient``.

    Each call consumes the next outcome: a ``Response`` is returned, an
    exception is raised.  The last outcome repeats once the script runs out.
    """

    outcomes: list[Response | BaseException] = field(
        default_factory=lambda: [Response(200, {}, b"ok")]
    )
    calls: list[Call] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def scripted(cls, *outcomes: Response | BaseException) -> FakeClient:
        return cls(outcomes=list(outcomes))

    def get(self, url: str, headers: RequestHeaders | None = None) -> Response:
        return self._next(Call("GET", url, headers))

    def post(
        self,
        url: str,
        body: RequestBody,
        headers: RequestHeaders | None = None,
    ) -> Response:
        return self._next(Call("POST", url, headers, body))

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def _next(self, call: Call) -> Response:
        with self._lock:
            self.calls.append(call)
            outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeClock:
    """Manually advanced time source in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Drop-in for ``time.sleep`` that records delays instead of blocking."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture(autouse=True)
def _fresh_metadata_cache():
    """Every test starts with an empty process-wide metadata cache."""
    reset_metadata_cache_for_testing()
    yield
    reset_metadata_cache_for_testing()
