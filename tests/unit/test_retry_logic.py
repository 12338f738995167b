"""
Tests for Retry Logic
=====================
"""

import pytest

from hemeroteca.recovery.retry_logic import RetryConfig, RetryManager
from hemeroteca.utils.exceptions import FetchFailed, FetchTimeout


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def flaky(failures, exc_factory=lambda: FetchTimeout("slow")):
    """Async callable failing ``failures`` times before succeeding."""
    calls = {"count": 0}

    async def func():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise exc_factory()
        return "ok"

    func.calls = calls
    return func


class TestRetryManager:

    @pytest.fixture
    def sleep(self):
        return RecordingSleep()

    @pytest.fixture
    def manager(self, sleep):
        config = RetryConfig(max_attempts=3, base_delay=1.0, max_delay=30.0, jitter=False)
        return RetryManager(config, sleep=sleep)

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, manager, sleep):
        func = flaky(0)
        assert await manager.retry_async(func) == "ok"
        assert func.calls["count"] == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_transient_errors_with_backoff(self, manager, sleep):
        func = flaky(2)
        assert await manager.retry_async(func) == "ok"
        assert func.calls["count"] == 3
        assert sleep.delays == [1.0, 2.0]
        assert manager.statistics.total_attempts == 3
        assert manager.statistics.total_successes == 1

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_last_error(self, manager, sleep):
        func = flaky(5)
        with pytest.raises(FetchTimeout):
            await manager.retry_async(func)
        assert func.calls["count"] == 3
        assert len(sleep.delays) == 2
        assert manager.statistics.total_failures == 1

    @pytest.mark.asyncio
    async def test_non_retryable_error_raised_immediately(self, manager, sleep):
        func = flaky(5, lambda: FetchFailed("HTTP 404", status=404, recoverable=False))
        with pytest.raises(FetchFailed):
            await manager.retry_async(func)
        assert func.calls["count"] == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_plain_exceptions_are_not_retried(self, manager):
        func = flaky(1, lambda: ValueError("bug"))
        with pytest.raises(ValueError):
            await manager.retry_async(func)
        assert func.calls["count"] == 1

    @pytest.mark.asyncio
    async def test_config_override(self, manager, sleep):
        func = flaky(5)
        with pytest.raises(FetchTimeout):
            await manager.retry_async(func, config=RetryConfig(max_attempts=1))
        assert func.calls["count"] == 1

    @pytest.mark.asyncio
    async def test_sync_callables(self, manager):
        assert await manager.retry_async(lambda x: x * 2, 21) == 42


class TestDelayCalculation:

    def test_exponential_capped_at_max(self):
        manager = RetryManager(RetryConfig(base_delay=1.0, max_delay=5.0, jitter=False))
        assert [manager.calculate_delay(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_jitter_stays_within_bounds(self):
        manager = RetryManager(RetryConfig(base_delay=4.0, max_delay=30.0, jitter=True))
        for _ in range(50):
            assert 3.0 <= manager.calculate_delay(1) <= 5.0

    def test_zero_base_delay(self):
        manager = RetryManager(RetryConfig(base_delay=0.0, max_delay=0.0))
        assert manager.calculate_delay(4) == 0.0

    def test_from_fetch_settings(self, test_settings):
        config = RetryConfig.from_fetch_settings(test_settings.fetch)
        assert config.max_attempts == 2
        assert config.base_delay == 0.0
        assert config.jitter is False

    def test_fetch_settings_drive_the_backoff(self, test_settings):
        fetch = test_settings.fetch.model_copy(update={"backoff_base": 0.5, "backoff_max": 1.5})
        manager = RetryManager(RetryConfig.from_fetch_settings(fetch))
        assert [manager.calculate_delay(n) for n in range(1, 5)] == [0.5, 1.0, 1.5, 1.5]
