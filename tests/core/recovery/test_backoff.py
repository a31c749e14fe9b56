"""
Tests for error classification and the shared backoff policy.
"""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock

from bubbles.core.recovery import (
    BackoffPolicy,
    DataTimeoutError,
    ErrorCategory,
    MalformedResponseError,
    RateLimitedError,
    RetryConfig,
    UnknownToolError,
    classify_error,
    error_payload,
)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://scan.w-chain.com/api/v2/addresses")
    return httpx.HTTPStatusError("boom", request=request, response=httpx.Response(status, request=request))


class TestErrorClassification:
    def test_rate_limit_is_recoverable(self):
        ctx = classify_error(_status_error(429))
        assert ctx.category == ErrorCategory.RATE_LIMITED
        assert ctx.recoverable is True

    def test_server_errors_retry_client_errors_do_not(self):
        assert classify_error(_status_error(503)).recoverable is True
        assert classify_error(_status_error(400)).recoverable is False

    def test_timeouts(self):
        assert classify_error(asyncio.TimeoutError()).category == ErrorCategory.TIMEOUT

    def test_classified_errors_keep_their_context(self):
        assert classify_error(MalformedResponseError("bad")).recoverable is False
        assert classify_error(RateLimitedError(provider="explorer")).provider == "explorer"

    def test_error_payload_shape(self):
        assert error_payload(UnknownToolError("getFoo")) == {"error": "unknown tool", "category": "unknown"}
        assert error_payload(_status_error(502))["error"] == "upstream returned HTTP 502"


class TestBackoffPolicy:
    def _policy(self, **config):
        sleep = AsyncMock()
        return BackoffPolicy(RetryConfig(**config), sleep=sleep), sleep

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self):
        policy, sleep = self._policy(max_attempts=3, initial_delay_seconds=1.0)
        operation = AsyncMock(side_effect=[httpx.ConnectError("down"), httpx.ConnectError("down"), "ok"])

        assert await policy.run(operation) == "ok"
        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_attempts_are_bounded(self):
        policy, sleep = self._policy(max_attempts=2)
        operation = AsyncMock(side_effect=httpx.ConnectError("down"))

        with pytest.raises(httpx.ConnectError):
            await policy.run(operation)
        assert operation.await_count == 2
        assert sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_unrecoverable_errors_are_not_retried(self):
        policy, sleep = self._policy(max_attempts=5)
        operation = AsyncMock(side_effect=MalformedResponseError("not json"))

        with pytest.raises(MalformedResponseError):
            await policy.run(operation)
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_attempt_timeout_becomes_data_timeout(self):
        policy = BackoffPolicy.single_attempt(0.01)

        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(DataTimeoutError):
            await policy.run(slow)

    def test_delay_is_capped(self):
        config = RetryConfig(initial_delay_seconds=1.0, max_delay_seconds=5.0)
        assert config.get_delay(0) == 1.0
        assert config.get_delay(10) == 5.0
