"""
Storage Infrastructure Module

String key/value substrates for durable cache tiers.

This module provides:
- InMemoryStorageArea: dictionary substrate with optional quota
- FileStorageArea: JSON document on disk
- RedisStorageArea: Redis hash per namespace
- StorageCircuitBreaker: failure isolation and call timeouts
"""

from .circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerMetrics,
    CircuitState,
    StorageCircuitBreaker,
)
from .redis_storage import RedisStorageArea
from .storage_areas import FileStorageArea, InMemoryStorageArea

__all__ = [
    "CircuitBreakerConfig",
    "CircuitBreakerMetrics",
    "CircuitState",
    "StorageCircuitBreaker",
    "RedisStorageArea",
    "FileStorageArea",
    "InMemoryStorageArea",
]
