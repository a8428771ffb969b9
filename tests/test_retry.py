"""Tests for the with_retry decorator."""

import pytest

from gworkspace_sdk import (
    HttpRequestFailed,
    NonRetryableError,
    RetryableError,
    RetryConfig,
    patch_retry_sleep,
    retry_error_for,
    with_retry,
)


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_retries_until_success(self) -> None:
        calls = {"n": 0}

        @with_retry(RetryConfig(max_retries=3, base_delay=1.0, max_delay=10.0))
        async def flaky() -> str:
            calls["n"] += 1
            if calls["n"] < 3:
                raise RetryableError("busy")
            return "ok"

        with patch_retry_sleep() as sleep:
            assert await flaky() == "ok"
        assert calls["n"] == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self) -> None:
        calls = {"n": 0}

        @with_retry(RetryConfig(max_retries=2, base_delay=1.0))
        async def always_busy() -> None:
            calls["n"] += 1
            raise RetryableError("busy")

        with patch_retry_sleep(), pytest.raises(RetryableError):
            await always_busy()
        assert calls["n"] == 3

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self) -> None:
        calls = {"n": 0}

        @with_retry(RetryConfig(max_retries=5))
        async def broken() -> None:
            calls["n"] += 1
            raise NonRetryableError("bad request")

        with patch_retry_sleep() as sleep, pytest.raises(NonRetryableError):
            await broken()
        assert calls["n"] == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_elapsed_budget_stops_retrying(self) -> None:
        calls = {"n": 0}

        @with_retry(RetryConfig(max_retries=5, base_delay=1.0, max_elapsed=0.5))
        async def slow() -> None:
            calls["n"] += 1
            raise RetryableError("busy")

        with patch_retry_sleep() as sleep, pytest.raises(RetryableError):
            await slow()
        assert calls["n"] == 1
        sleep.assert_not_awaited()

    def test_delay_is_capped(self) -> None:
        config = RetryConfig(base_delay=1.0, max_delay=10.0)
        assert [config.delay_for(i) for i in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]

    @pytest.mark.asyncio
    async def test_retry_after_hint_replaces_backoff(self) -> None:
        calls = {"n": 0}

        @with_retry(RetryConfig(max_retries=2, base_delay=1.0, max_delay=10.0))
        async def throttled() -> str:
            calls["n"] += 1
            if calls["n"] == 1:
                raise RetryableError("rate limited", retry_after=7)
            if calls["n"] == 2:
                raise RetryableError("rate limited", retry_after=120)
            return "ok"

        with patch_retry_sleep() as sleep:
            assert await throttled() == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [7, 10.0]


class TestRetryErrorFor:
    def test_rate_limit_is_retryable_with_hint(self) -> None:
        err = retry_error_for(HttpRequestFailed(429, "u", headers={"Retry-After": "3"}))
        assert isinstance(err, RetryableError)
        assert err.retry_after == 3

    def test_server_error_is_retryable(self) -> None:
        err = retry_error_for(HttpRequestFailed(503, "u"))
        assert isinstance(err, RetryableError)
        assert err.retry_after is None

    def test_client_error_is_permanent(self) -> None:
        assert isinstance(retry_error_for(HttpRequestFailed(404, "u")), NonRetryableError)
