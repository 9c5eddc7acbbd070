"""
Unit tests for src/query_client/retry.py and RetryPolicy in types.py.

Covers policy construction and validation, the retry decision table,
backoff growth and saturation, Retry-After precedence, and the loop's
attempt accounting on success and on exhaustion.
"""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from conftest import http_failure, network_failure, ok_response, setup_failure
from query_client.errors import (
    ApiError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ServerError,
)
from query_client.retry import RetryController, run_with_retry
from query_client.types import RetryPolicy


def _controller(sleeps: list, **policy) -> RetryController:
    return RetryController(RetryPolicy(**policy), sleep=sleeps.append)


# ---------------------------------------------------------------------------
# Class: RetryPolicy
# ---------------------------------------------------------------------------

class TestRetryPolicy:

    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.initial_delay == 1.0
        assert policy.backoff_factor == 2.0
        assert policy.max_delay == 30.0
        assert policy.retry_status_codes == frozenset({408, 429, 500, 502, 503, 504})

    def test_from_config_merges_partial(self):
        policy = RetryPolicy.from_config({"max_retries": 5})
        assert policy.max_retries == 5
        assert policy.initial_delay == 1.0

    def test_from_config_accepts_camel_case(self):
        policy = RetryPolicy.from_config({"maxRetries": 1, "retryStatusCodes": [503]})
        assert policy.max_retries == 1
        assert policy.retry_status_codes == frozenset({503})

    def test_from_config_none(self):
        assert RetryPolicy.from_config(None) == RetryPolicy()

    def test_unknown_key_rejected(self):
        with pytest.raises(TypeError):
            RetryPolicy.from_config({"retries": 2})

    @pytest.mark.parametrize("overrides", [
        {"max_retries": -1},
        {"backoff_factor": 0.5},
        {"initial_delay": -1.0},
        {"max_delay": -1.0},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            RetryPolicy(**overrides)


# ---------------------------------------------------------------------------
# Class: should_retry
# ---------------------------------------------------------------------------

class TestShouldRetry:

    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
    def test_listed_statuses_retried(self, status):
        assert _controller([]).should_retry(http_failure(status), 0)

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 501])
    def test_other_statuses_not_retried(self, status):
        assert not _controller([]).should_retry(http_failure(status), 0)

    def test_network_failure_retried(self):
        assert _controller([]).should_retry(network_failure(), 0)

    def test_setup_failure_not_retried(self):
        assert not _controller([]).should_retry(setup_failure(), 0)

    def test_limit_reached(self):
        controller = _controller([], max_retries=2)
        assert controller.should_retry(http_failure(503), 1)
        assert not controller.should_retry(http_failure(503), 2)

    def test_zero_retries(self):
        assert not _controller([], max_retries=0).should_retry(network_failure(), 0)

    def test_custom_condition(self):
        controller = _controller([], retry_condition=lambda failure: failure.status == 409)
        assert controller.should_retry(http_failure(409), 0)
        assert not controller.should_retry(http_failure(404), 0)

    def test_custom_condition_respects_limit(self):
        controller = _controller([], max_retries=1, retry_condition=lambda failure: True)
        assert not controller.should_retry(http_failure(404), 1)


# ---------------------------------------------------------------------------
# Class: delay_for
# ---------------------------------------------------------------------------

class TestDelay:

    def test_exponential_growth(self):
        controller = _controller([], initial_delay=1.0, backoff_factor=2.0, max_delay=100.0)
        assert [controller.delay_for(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_saturates_at_max(self):
        controller = _controller([], initial_delay=1.0, backoff_factor=3.0, max_delay=5.0)
        delays = [controller.delay_for(n) for n in range(6)]
        assert delays == [1.0, 3.0, 5.0, 5.0, 5.0, 5.0]
        assert delays == sorted(delays)

    def test_constant_with_factor_one(self):
        controller = _controller([], initial_delay=0.5, backoff_factor=1.0)
        assert {controller.delay_for(n) for n in range(5)} == {0.5}

    def test_retry_after_raises_wait(self):
        controller = _controller([], initial_delay=1.0)
        assert controller.delay_for(0, retry_after=2.0) == 2.0

    def test_shorter_retry_after_ignored(self):
        controller = _controller([], initial_delay=4.0)
        assert controller.delay_for(0, retry_after=1.0) == 4.0


# ---------------------------------------------------------------------------
# Class: run loop
# ---------------------------------------------------------------------------

class TestRun:

    def test_first_attempt_succeeds(self):
        sleeps: list = []
        send = MagicMock(return_value="ok")
        assert _controller(sleeps).run(send) == "ok"
        assert send.call_count == 1
        assert sleeps == []

    def test_recovers_after_transient_failures(self):
        sleeps: list = []
        send = MagicMock(side_effect=[http_failure(503), http_failure(503), ok_response()])
        result = _controller(sleeps, initial_delay=1.0, backoff_factor=2.0).run(send)

        assert result.status == 200
        assert send.call_count == 3
        assert sleeps == [1.0, 2.0]

    def test_non_retryable_fails_immediately(self):
        sleeps: list = []
        send = MagicMock(side_effect=http_failure(401, {"message": "bad token"}))
        with pytest.raises(AuthenticationError, match="bad token") as exc_info:
            _controller(sleeps).run(send)

        assert send.call_count == 1
        assert sleeps == []
        assert exc_info.value.retry_meta.attempt == 0

    def test_exhaustion_reports_final_attempt(self):
        sleeps: list = []
        send = MagicMock(side_effect=[http_failure(500)] * 3)
        with pytest.raises(ServerError) as exc_info:
            _controller(sleeps, max_retries=2).run(send)

        assert send.call_count == 3
        assert len(sleeps) == 2
        meta = exc_info.value.retry_meta
        assert (meta.attempt, meta.max_attempts) == (2, 2)

    def test_network_exhaustion(self):
        sleeps: list = []
        send = MagicMock(side_effect=[network_failure()] * 2)
        with pytest.raises(NetworkError) as exc_info:
            _controller(sleeps, max_retries=1).run(send)

        assert exc_info.value.status_code == 0
        assert exc_info.value.__cause__ is not None

    def test_rate_limit_honours_retry_after(self):
        sleeps: list = []
        send = MagicMock(side_effect=[
            http_failure(429, headers={"Retry-After": "5"}),
            ok_response(),
        ])
        _controller(sleeps, initial_delay=1.0).run(send)
        assert sleeps == [5.0]

    def test_rate_limit_exhausted_carries_hint(self):
        send = MagicMock(side_effect=http_failure(429, headers={"Retry-After": "2"}))
        with pytest.raises(RateLimitError) as exc_info:
            _controller([], max_retries=0).run(send)
        assert exc_info.value.retry_after == 2.0

    def test_setup_failure_not_retried(self):
        sleeps: list = []
        send = MagicMock(side_effect=setup_failure())
        with pytest.raises(ApiError) as exc_info:
            _controller(sleeps).run(send)
        assert type(exc_info.value) is ApiError
        assert send.call_count == 1

    def test_other_exceptions_propagate(self):
        send = MagicMock(side_effect=KeyError("boom"))
        with pytest.raises(KeyError):
            _controller([]).run(send)

    def test_logs_each_failed_attempt(self, caplog):
        send = MagicMock(side_effect=[http_failure(503), ok_response()])
        with caplog.at_level(logging.INFO, logger="query_client"):
            _controller([]).run(send, label="POST /query")

        messages = [record.getMessage() for record in caplog.records]
        assert any("POST /query: attempt 1/4 failed [server]" in m for m in messages)
        assert any("retrying in 1.00s" in m for m in messages)

    def test_run_with_retry_helper(self):
        sleeps: list = []
        send = MagicMock(side_effect=[network_failure(), "done"])
        assert run_with_retry(send, RetryPolicy(initial_delay=0.25), sleep=sleeps.append) == "done"
        assert sleeps == [0.25]
