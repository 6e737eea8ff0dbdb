"""
Cache Composition

Wires tier backends from settings into a CacheManager.
"""

import logging
from typing import Dict, Optional
from uuid import uuid4

from ...core.config import Settings, get_settings
from ...domain.cache.repository_interfaces import TierBackend
from ...domain.cache.value_objects import TTL, CacheTier
from ...infrastructure.repositories.cache_repository import (
    MemoryTierBackend,
    StorageTierBackend,
)
from ...infrastructure.storage import (
    CircuitBreakerConfig,
    FileStorageArea,
    InMemoryStorageArea,
    RedisStorageArea,
    StorageCircuitBreaker,
)
from ...infrastructure.storage.redis_storage import REDIS_FAILURE_EXCEPTIONS
from .cache_manager import CacheManager

logger = logging.getLogger(__name__)


def _circuit_breaker(settings: Settings, name: str) -> StorageCircuitBreaker:
    return StorageCircuitBreaker(
        CircuitBreakerConfig(
            failure_threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
            recovery_timeout=settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
            operation_timeout=settings.STORAGE_OPERATION_TIMEOUT_SECONDS,
            failure_exceptions=REDIS_FAILURE_EXCEPTIONS,
        ),
        name=name,
    )


def _redis_area(
    settings: Settings, namespace: str, expire_seconds: Optional[int] = None
) -> RedisStorageArea:
    return RedisStorageArea.from_url(
        settings.REDIS_URL,
        namespace,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        expire_seconds=expire_seconds,
        circuit_breaker=_circuit_breaker(settings, namespace),
    )


def build_persistent_backend(settings: Settings) -> TierBackend:
    """Backend for the tier that survives across sessions."""
    backend = settings.CACHE_PERSISTENT_BACKEND
    if backend == "file":
        return StorageTierBackend(FileStorageArea(settings.CACHE_PERSISTENT_PATH))
    if backend == "redis":
        return StorageTierBackend(
            _redis_area(settings, f"{settings.CACHE_NAMESPACE}:persistent")
        )
    return StorageTierBackend(InMemoryStorageArea())


def build_session_backend(settings: Settings, session_id: str) -> TierBackend:
    """Backend for the tier scoped to one session."""
    if settings.CACHE_SESSION_BACKEND == "redis":
        return StorageTierBackend(
            _redis_area(
                settings,
                f"{settings.CACHE_NAMESPACE}:session:{session_id}",
                expire_seconds=settings.CACHE_SESSION_TTL_SECONDS,
            )
        )
    return StorageTierBackend(InMemoryStorageArea())


def build_cache_manager(
    settings: Optional[Settings] = None, session_id: Optional[str] = None
) -> CacheManager:
    """
    Build a cache manager with all three tiers configured.

    Args:
        settings: Application settings (cached settings when omitted)
        session_id: Session namespace for the session tier (random when omitted)
    """
    settings = settings or get_settings()
    session_id = session_id or uuid4().hex

    backends: Dict[CacheTier, TierBackend] = {
        CacheTier.MEMORY: MemoryTierBackend(),
        CacheTier.PERSISTENT: build_persistent_backend(settings),
        CacheTier.SESSION: build_session_backend(settings, session_id),
    }

    logger.info(
        "Cache manager configured",
        extra={
            "persistent_backend": settings.CACHE_PERSISTENT_BACKEND,
            "session_backend": settings.CACHE_SESSION_BACKEND,
            "session_id": session_id,
        },
    )
    return CacheManager(
        backends=backends, default_ttl=TTL(settings.CACHE_DEFAULT_TTL_MS)
    )
