"""
Storage Circuit Breaker

Guards calls into a durable storage substrate. After repeated substrate
failures the breaker trips and cache calls fail fast with
StorageCircuitOpenException, which the cache manager reads as a miss,
until a cool-down has passed and trial calls succeed again.
"""

import asyncio
import dataclasses
import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ...domain.cache.exceptions import StorageCircuitOpenException

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Breaker states."""

    CLOSED = "closed"  # Calls reach the substrate
    OPEN = "open"  # Calls fail fast
    HALF_OPEN = "half_open"  # Trial calls after the cool-down


@dataclass
class CircuitBreakerConfig:
    """Thresholds and timing for one storage breaker."""

    failure_threshold: int = 5  # consecutive failures that trip the breaker
    recovery_timeout: float = 60.0  # seconds spent open before trial calls
    success_threshold: int = 3  # trial successes needed to close again
    operation_timeout: float = 5.0  # upper bound for one substrate call
    failure_exceptions: tuple = (ConnectionError, TimeoutError, OSError)


@dataclass
class CircuitBreakerMetrics:
    """Call counters since the breaker was created."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    timeout_calls: int = 0
    rejected_calls: int = 0
    circuit_opens: int = 0
    last_failure_time: Optional[float] = None
    last_success_time: Optional[float] = None


class StorageCircuitBreaker:
    """
    Circuit breaker for one storage area.

    Only exceptions listed in ``failure_exceptions`` (and call timeouts)
    count against the substrate; anything else propagates without
    affecting the breaker state.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "storage",
    ):
        self.config = config or CircuitBreakerConfig()
        self.name = name
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None
        self.metrics = CircuitBreakerMetrics()
        self._clock = clock
        self._lock = asyncio.Lock()

    async def call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run one substrate call through the breaker.

        Raises:
            StorageCircuitOpenException: While the breaker is open
            asyncio.TimeoutError: When the call exceeds ``operation_timeout``
        """
        await self._admit()

        try:
            result = await asyncio.wait_for(
                self._invoke(func, *args, **kwargs),
                timeout=self.config.operation_timeout,
            )
        except asyncio.TimeoutError:
            self.metrics.timeout_calls += 1
            logger.warning(
                f"Storage call on '{self.name}' timed out after "
                f"{self.config.operation_timeout}s",
                extra={"breaker": self.name, "state": self.state.value},
            )
            await self._on_failure("timeout")
            raise
        except self.config.failure_exceptions as e:
            await self._on_failure(type(e).__name__)
            raise

        await self._on_success()
        return result

    async def _admit(self) -> None:
        async with self._lock:
            self.metrics.total_calls += 1
            if self.state != CircuitState.OPEN:
                return
            if self._cooled_down():
                self.state = CircuitState.HALF_OPEN
                logger.info(
                    f"Storage breaker '{self.name}' allowing trial calls",
                    extra={"breaker": self.name, "failure_count": self.failure_count},
                )
                return
            self.metrics.rejected_calls += 1
        raise StorageCircuitOpenException()

    @staticmethod
    async def _invoke(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        result = func(*args, **kwargs)
        if inspect.isawaitable(result):
            return await result
        return result

    def _cooled_down(self) -> bool:
        if self.last_failure_time is None:
            return True
        return self._clock() - self.last_failure_time >= self.config.recovery_timeout

    def _trip(self, reason: str) -> None:
        self.state = CircuitState.OPEN
        self.success_count = 0
        self.metrics.circuit_opens += 1
        logger.warning(
            f"Storage breaker '{self.name}' opened: {reason}",
            extra={
                "breaker": self.name,
                "failure_count": self.failure_count,
                "threshold": self.config.failure_threshold,
            },
        )

    def _close(self) -> None:
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0

    async def _on_success(self) -> None:
        async with self._lock:
            self.metrics.successful_calls += 1
            self.metrics.last_success_time = self._clock()

            if self.state == CircuitState.HALF_OPEN:
                self.success_count += 1
                if self.success_count >= self.config.success_threshold:
                    self._close()
                    logger.info(f"Storage breaker '{self.name}' closed, substrate recovered")
            elif self.state == CircuitState.CLOSED:
                self.failure_count = 0

    async def _on_failure(self, failure_type: str) -> None:
        async with self._lock:
            now = self._clock()
            self.metrics.failed_calls += 1
            self.metrics.last_failure_time = now
            self.last_failure_time = now

            if self.state == CircuitState.HALF_OPEN:
                self._trip(f"trial call failed ({failure_type})")
            elif self.state == CircuitState.CLOSED:
                self.failure_count += 1
                if self.failure_count >= self.config.failure_threshold:
                    self._trip(f"{self.failure_count} consecutive failures ({failure_type})")

    def get_status(self) -> Dict[str, Any]:
        """Snapshot of breaker state and counters."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "last_failure_time": self.last_failure_time,
            "metrics": dataclasses.asdict(self.metrics),
        }

    async def reset(self) -> None:
        """Force the breaker closed and forget the last failure."""
        async with self._lock:
            self._close()
            self.last_failure_time = None
        logger.info(f"Storage breaker '{self.name}' reset")
