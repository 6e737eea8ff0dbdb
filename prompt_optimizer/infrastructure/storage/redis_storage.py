"""
Redis Storage Area

StorageArea backed by a single Redis hash per namespace.
Used for durable tiers shared across processes; a per-session namespace
with hash-level expiry backs the session tier.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional

import redis.asyncio as Redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    ResponseError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)

from ...domain.cache.exceptions import (
    StorageException,
    StorageQuotaExceededException,
    StorageUnavailableException,
)
from ...domain.cache.repository_interfaces import StorageArea
from .circuit_breaker import CircuitBreakerConfig, StorageCircuitBreaker

logger = logging.getLogger(__name__)

REDIS_FAILURE_EXCEPTIONS = (
    RedisConnectionError,
    RedisTimeoutError,
    ConnectionError,
    TimeoutError,
    OSError,
)


def _decode(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class RedisStorageArea(StorageArea):
    """
    Redis hash backed storage area.

    ``HGET``/``HSET``/``HDEL`` keep every item operation atomic. Enumeration
    order is the sorted field order, stable between calls that do not
    mutate the hash. When ``expire_seconds`` is set the whole hash expires
    that long after the last write.
    """

    def __init__(
        self,
        client: Redis.Redis,
        namespace: str,
        expire_seconds: Optional[int] = None,
        circuit_breaker: Optional[StorageCircuitBreaker] = None,
        owns_client: bool = False,
    ):
        if not namespace:
            raise ValueError("Redis storage namespace cannot be empty")
        if expire_seconds is not None and expire_seconds <= 0:
            raise ValueError("Redis storage expiry must be positive")

        self.client = client
        self.namespace = namespace
        self.expire_seconds = expire_seconds
        self.circuit_breaker = circuit_breaker or StorageCircuitBreaker(
            CircuitBreakerConfig(failure_exceptions=REDIS_FAILURE_EXCEPTIONS),
            name=namespace,
        )
        self._owns_client = owns_client

    @classmethod
    def from_url(
        cls,
        url: str,
        namespace: str,
        max_connections: int = 10,
        expire_seconds: Optional[int] = None,
        circuit_breaker: Optional[StorageCircuitBreaker] = None,
    ) -> "RedisStorageArea":
        """Create storage area with its own connection pool."""
        client = Redis.from_url(
            url, max_connections=max_connections, decode_responses=True
        )
        return cls(
            client,
            namespace,
            expire_seconds=expire_seconds,
            circuit_breaker=circuit_breaker,
            owns_client=True,
        )

    async def _call(
        self, operation: str, func: Callable[..., Any], *args, key: Optional[str] = None
    ) -> Any:
        try:
            return await self.circuit_breaker.call(func, *args)
        except StorageException:
            raise
        except ResponseError as e:
            if str(e).startswith("OOM"):
                raise StorageQuotaExceededException(
                    f"Redis memory limit reached for {self.namespace}", key=key
                ) from e
            raise StorageUnavailableException(
                f"Redis rejected {operation} on {self.namespace}",
                operation=operation,
                key=key,
                original_error=e,
            ) from e
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise StorageUnavailableException(
                f"Redis {operation} failed on {self.namespace}",
                operation=operation,
                key=key,
                original_error=e,
            ) from e

    async def _write(self, key: str, value: str) -> None:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.hset(self.namespace, key, value)
            if self.expire_seconds:
                pipe.expire(self.namespace, self.expire_seconds)
            await pipe.execute()

    async def _sorted_fields(self) -> List[str]:
        fields = await self._call("key", self.client.hkeys, self.namespace)
        return sorted(_decode(f) for f in fields)

    async def get_item(self, key: str) -> Optional[str]:
        value = await self._call("get_item", self.client.hget, self.namespace, key, key=key)
        return _decode(value)

    async def set_item(self, key: str, value: str) -> None:
        await self._call("set_item", self._write, key, value, key=key)

    async def remove_item(self, key: str) -> None:
        await self._call("remove_item", self.client.hdel, self.namespace, key, key=key)

    async def key(self, index: int) -> Optional[str]:
        fields = await self._sorted_fields()
        if index < 0 or index >= len(fields):
            return None
        return fields[index]

    async def keys(self) -> List[str]:
        """Return every field in one round trip."""
        return await self._sorted_fields()

    async def length(self) -> int:
        return int(await self._call("length", self.client.hlen, self.namespace))

    async def clear(self) -> None:
        await self._call("clear", self.client.delete, self.namespace)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
            logger.info(f"Closed Redis storage area {self.namespace}")
