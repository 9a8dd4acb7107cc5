"""
Unit tests for the retry policy and retry loop
"""

import pytest
from core.exceptions import (
    ConfigurationError,
    RetriesExhaustedError,
    TransportError,
    UpstreamShapeError,
    UpstreamStatusError,
)
from ingestion.retry import RetryPolicy, is_retryable_growi_error, retry_async


class TestRetryability:
    """Classification of Growi errors"""

    @pytest.mark.parametrize("status", [0, 429, 500, 502, 503, 504])
    def test_transient_statuses_are_retried(self, status):
        error = UpstreamStatusError("upstream failure", status_code=status)
        assert is_retryable_growi_error(error) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_are_fatal(self, status):
        error = UpstreamStatusError("nope", status_code=status)
        assert is_retryable_growi_error(error) is False

    def test_422_request_timeout_is_retried(self):
        error = UpstreamStatusError(
            '{"error":"Request timeout"}',
            status_code=422,
            response_body='{"error":"Request timeout"}'
        )
        assert is_retryable_growi_error(error) is True

    def test_other_422_is_fatal(self):
        error = UpstreamStatusError("Invalid date range", status_code=422)
        assert is_retryable_growi_error(error) is False

    def test_transport_error_is_retried(self):
        assert is_retryable_growi_error(TransportError("connection reset")) is True

    def test_shape_error_is_fatal(self):
        assert is_retryable_growi_error(UpstreamShapeError("bad body", path="data")) is False

    def test_configuration_and_unknown_errors_are_fatal(self):
        assert is_retryable_growi_error(ConfigurationError("no token")) is False
        assert is_retryable_growi_error(KeyError("x")) is False


class TestRetryPolicy:

    def test_linear_backoff(self):
        policy = RetryPolicy(base_delay=1.0)
        assert [policy.delay_after(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]

    def test_exponential_and_constant_backoff(self):
        assert RetryPolicy(base_delay=0.5, backoff="exponential").delay_after(3) == 2.0
        assert RetryPolicy(base_delay=0.5, backoff="constant").delay_after(3) == 0.5

    def test_invalid_policy_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(backoff="fibonacci")


class TestRetryAsync:

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self, fake_sleep):
        outcomes = [
            UpstreamStatusError("boom", status_code=500),
            UpstreamStatusError("boom", status_code=503),
            "ok",
        ]
        calls = []

        async def operation():
            calls.append(1)
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        result = await retry_async(operation, RetryPolicy(max_attempts=4), sleep=fake_sleep)

        assert result == "ok"
        assert len(calls) == 3
        assert fake_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_fatal_error_is_not_retried(self, fake_sleep):
        calls = []

        async def operation():
            calls.append(1)
            raise UpstreamStatusError("forbidden", status_code=403)

        with pytest.raises(UpstreamStatusError) as exc_info:
            await retry_async(operation, RetryPolicy(), sleep=fake_sleep)

        assert exc_info.value.status_code == 403
        assert len(calls) == 1
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_exhausted_budget_wraps_last_error(self, fake_sleep):
        calls = []
        retries = []

        async def operation():
            calls.append(1)
            raise UpstreamStatusError("still down", status_code=502)

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await retry_async(
                operation,
                RetryPolicy(max_attempts=4),
                sleep=fake_sleep,
                on_retry=lambda attempt, error, delay: retries.append((attempt, delay)),
            )

        error = exc_info.value
        assert len(calls) == 4
        assert error.attempts == 4
        assert error.status_code == 502
        assert error.context["attempts"] == 4
        # no sleep after the final attempt
        assert fake_sleep.delays == [1.0, 2.0, 3.0]
        assert retries == [(1, 1.0), (2, 2.0), (3, 3.0)]

    @pytest.mark.asyncio
    async def test_each_call_has_its_own_budget(self, fake_sleep):
        policy = RetryPolicy(max_attempts=2)
        state = {"fail_next": True}

        async def flaky():
            if state["fail_next"]:
                state["fail_next"] = False
                raise TransportError("reset")
            state["fail_next"] = True
            return "ok"

        assert await retry_async(flaky, policy, sleep=fake_sleep) == "ok"
        assert await retry_async(flaky, policy, sleep=fake_sleep) == "ok"
