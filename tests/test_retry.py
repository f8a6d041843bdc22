"""Tests for litcal_http/retry.py.

Covers:
- N+1 attempts against a permanently failing inner client
- Exponential and linear delay schedules
- Exhaustion: exceptions re-raised, retryable responses returned
- Non-retryable statuses and foreign exceptions pass straight through
- Retry events are logged
"""

from __future__ import annotations

import pytest
from conftest import FakeClient, SleepRecorder

from litcal_core.config import NO_RETRY_POLICY, BackoffMode, RetryPolicy
from litcal_core.errors import ConfigurationError, TransportError
from litcal_core.types import Response
from litcal_http.retry import RetryClient

URL = "https://api.example.org/calendar"


def _policy(**kwargs) -> RetryPolicy:
    defaults = {"max_retries": 3, "base_delay_seconds": 0.1}
    defaults.update(kwargs)
    return RetryPolicy(**defaults)


# ---------------------------------------------------------------------------
# Attempt counting
# ---------------------------------------------------------------------------


class TestAttempts:
    @pytest.mark.parametrize("max_retries", [0, 1, 3, 5])
    def test_permanent_transport_failure_invokes_inner_n_plus_one_times(
        self, max_retries: int, sleep: SleepRecorder
    ) -> None:
        inner = FakeClient.scripted(TransportError("refused"))
        client = RetryClient(inner, _policy(max_retries=max_retries), sleep=sleep)
        with pytest.raises(TransportError, match="refused"):
            client.get(URL)
        assert inner.call_count == max_retries + 1
        assert len(sleep.delays) == max_retries

    def test_recovers_after_transient_failures(self, sleep: SleepRecorder) -> None:
        inner = FakeClient.scripted(
            TransportError("reset"), Response(503), Response(200, {}, b"ok")
        )
        response = RetryClient(inner, _policy(), sleep=sleep).get(URL)
        assert response.status_code == 200
        assert inner.call_count == 3
        assert len(sleep.delays) == 2

    def test_no_retry_policy_single_attempt(self, sleep: SleepRecorder) -> None:
        inner = FakeClient.scripted(Response(503))
        assert RetryClient(inner, NO_RETRY_POLICY, sleep=sleep).get(URL).status_code == 503
        assert inner.call_count == 1
        assert sleep.delays == []

    def test_post_is_retried_too(self, sleep: SleepRecorder) -> None:
        inner = FakeClient.scripted(Response(502), Response(201))
        response = RetryClient(inner, _policy(), sleep=sleep).post(URL, {"year": 2025})
        assert response.status_code == 201
        assert [c.body for c in inner.calls] == [{"year": 2025}, {"year": 2025}]


# ---------------------------------------------------------------------------
# Backoff schedule
# ---------------------------------------------------------------------------


class TestBackoff:
    def test_exponential_delays(self, sleep: SleepRecorder) -> None:
        inner = FakeClient.scripted(TransportError("down"))
        client = RetryClient(inner, _policy(backoff=BackoffMode.EXPONENTIAL), sleep=sleep)
        with pytest.raises(TransportError):
            client.get(URL)
        assert sleep.delays == pytest.approx([0.1, 0.2, 0.4])

    def test_linear_delays(self, sleep: SleepRecorder) -> None:
        inner = FakeClient.scripted(TransportError("down"))
        client = RetryClient(inner, _policy(backoff=BackoffMode.LINEAR), sleep=sleep)
        with pytest.raises(TransportError):
            client.get(URL)
        assert sleep.delays == pytest.approx([0.1, 0.1, 0.1])


# ---------------------------------------------------------------------------
# Exhaustion and pass-through
# ---------------------------------------------------------------------------


class TestExhaustion:
    def test_retryable_status_returned_not_raised(self, sleep: SleepRecorder) -> None:
        last = Response(503, {"Retry-After": "30"}, b"maintenance")
        inner = FakeClient.scripted(Response(503), Response(503), Response(503), last)
        response = RetryClient(inner, _policy(), sleep=sleep).get(URL)
        assert response is last
        assert inner.call_count == 4

    def test_last_failure_kind_wins(self, sleep: SleepRecorder) -> None:
        inner = FakeClient.scripted(Response(503), TransportError("gone"))
        client = RetryClient(inner, _policy(max_retries=1), sleep=sleep)
        with pytest.raises(TransportError, match="gone"):
            client.get(URL)

    @pytest.mark.parametrize("status", [200, 400, 404, 501])
    def test_non_retryable_status_returned_immediately(
        self, status: int, sleep: SleepRecorder
    ) -> None:
        inner = FakeClient.scripted(Response(status))
        assert RetryClient(inner, _policy(), sleep=sleep).get(URL).status_code == status
        assert inner.call_count == 1
        assert sleep.delays == []

    def test_custom_retry_statuses(self, sleep: SleepRecorder) -> None:
        inner = FakeClient.scripted(Response(404), Response(200))
        policy = _policy(retry_status_codes=frozenset({404}))
        assert RetryClient(inner, policy, sleep=sleep).get(URL).status_code == 200
        assert inner.call_count == 2

    def test_other_exceptions_not_retried(self, sleep: SleepRecorder) -> None:
        inner = FakeClient.scripted(KeyError("bug"))
        with pytest.raises(KeyError):
            RetryClient(inner, _policy(), sleep=sleep).get(URL)
        assert inner.call_count == 1


# ---------------------------------------------------------------------------
# Validation and logging
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_retries": -1},
            {"base_delay_seconds": 0},
            {"retry_status_codes": frozenset({42})},
        ],
    )
    def test_invalid_policy_rejected_at_construction(self, kwargs: dict) -> None:
        with pytest.raises(ConfigurationError):
            RetryClient(FakeClient(), _policy(**kwargs))

    def test_default_policy(self) -> None:
        assert RetryClient(FakeClient()).policy == RetryPolicy()


class TestLogging:
    def test_retry_and_exhaustion_logged(
        self, sleep: SleepRecorder, caplog: pytest.LogCaptureFixture
    ) -> None:
        inner = FakeClient.scripted(TransportError("down"))
        client = RetryClient(inner, _policy(max_retries=1), sleep=sleep)
        with caplog.at_level("DEBUG", logger="litcal_http.retry"), pytest.raises(TransportError):
            client.get(URL)
        events = [getattr(r, "event", None) for r in caplog.records]
        assert events.count("retry") == 1
        assert events.count("retry_exhausted") == 1

    def test_success_after_retry_logged(
        self, sleep: SleepRecorder, caplog: pytest.LogCaptureFixture
    ) -> None:
        inner = FakeClient.scripted(Response(500), Response(200))
        with caplog.at_level("INFO", logger="litcal_http.retry"):
            RetryClient(inner, _policy(), sleep=sleep).get(URL)
        assert any(getattr(r, "event", None) == "retry_success" for r in caplog.records)
