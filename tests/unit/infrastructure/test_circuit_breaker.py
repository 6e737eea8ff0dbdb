"""
Unit tests for the storage circuit breaker.
"""

import asyncio

import pytest

from prompt_optimizer.domain.cache.exceptions import StorageCircuitOpenException
from prompt_optimizer.infrastructure.storage import (
    CircuitBreakerConfig,
    CircuitState,
    StorageCircuitBreaker,
)


class MonotonicClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestStorageCircuitBreaker:
    """Test StorageCircuitBreaker state transitions."""

    @pytest.fixture
    def clock(self):
        return MonotonicClock()

    @pytest.fixture
    def breaker(self, clock):
        return StorageCircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=2,
                recovery_timeout=30,
                success_threshold=1,
                operation_timeout=0.05,
            ),
            clock=clock,
        )

    @staticmethod
    async def failing():
        raise ConnectionError("storage down")

    @staticmethod
    async def succeeding():
        return "ok"

    @pytest.mark.asyncio
    async def test_passes_results_through(self, breaker):
        assert await breaker.call(self.succeeding) == "ok"
        assert await breaker.call(lambda: "sync") == "sync"
        assert breaker.metrics.successful_calls == 2

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, breaker):
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(self.failing)

        assert breaker.state == CircuitState.OPEN
        with pytest.raises(StorageCircuitOpenException):
            await breaker.call(self.succeeding)
        assert breaker.metrics.rejected_calls == 1

    @pytest.mark.asyncio
    async def test_untracked_exceptions_do_not_open(self, breaker):
        async def broken():
            raise KeyError("bug")

        for _ in range(3):
            with pytest.raises(KeyError):
                await breaker.call(broken)

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_recovers_after_timeout(self, breaker, clock):
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(self.failing)

        clock.now += 31
        assert await breaker.call(self.succeeding) == "ok"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker, clock):
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(self.failing)

        clock.now += 31
        with pytest.raises(ConnectionError):
            await breaker.call(self.failing)
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, breaker):
        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(asyncio.TimeoutError):
            await breaker.call(slow)

        assert breaker.metrics.timeout_calls == 1
        assert breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_reset(self, breaker):
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(self.failing)

        await breaker.reset()
        status = breaker.get_status()
        assert status["state"] == "closed"
        assert status["failure_count"] == 0
        assert status["metrics"]["circuit_opens"] == 1

    @pytest.mark.asyncio
    async def test_status_snapshot(self, clock):
        breaker = StorageCircuitBreaker(clock=clock, name="po:persistent")

        await breaker.call(self.succeeding)
        with pytest.raises(ConnectionError):
            await breaker.call(self.failing)

        status = breaker.get_status()
        assert status["name"] == "po:persistent"
        assert status["failure_count"] == 1
        assert status["last_failure_time"] == 100.0
        assert status["metrics"]["total_calls"] == 2
        assert status["metrics"]["failed_calls"] == 1
        assert status["metrics"]["last_success_time"] == 100.0
