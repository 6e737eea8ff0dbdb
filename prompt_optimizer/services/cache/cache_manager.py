"""
Cache Manager Service

High-level cache management service over independently addressable tiers.
Orchestrates tier backends and domain services; absorbs storage and
serialization faults so callers only ever see data or absence.
"""

import logging
from datetime import timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from opentelemetry import trace

from ...constants import current_time_ms
from ...domain.cache.domain_services import CacheGroupRegistry, CacheInvalidationService
from ...domain.cache.entities import CacheEntry
from ...domain.cache.exceptions import (
    CacheConfigurationException,
    CacheSerializationException,
    StorageException,
)
from ...domain.cache.repository_interfaces import TierBackend
from ...domain.cache.value_objects import (
    TTL,
    CacheKey,
    CacheStats,
    CacheTag,
    CacheTier,
    TierStats,
    normalize_tags,
)
from ...infrastructure.repositories.cache_repository import MemoryTierBackend
from ...monitoring.cache_metrics import record_evictions, record_operation

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

TierLike = Union[str, CacheTier]
TTLLike = Union[TTL, int, timedelta, None]


class CacheManager:
    """
    Tiered cache store.

    Built once at startup with the backends for each tier it serves and
    handed to the components that cache through it. The memory tier is
    always present.
    """

    def __init__(
        self,
        backends: Optional[Dict[TierLike, TierBackend]] = None,
        default_ttl: Optional[TTL] = None,
        clock: Callable[[], int] = current_time_ms,
    ):
        configured = backends if backends is not None else {}
        self.backends: Dict[CacheTier, TierBackend] = {
            CacheTier(tier): backend for tier, backend in configured.items()
        }
        self.backends.setdefault(CacheTier.MEMORY, MemoryTierBackend())

        self.default_ttl = default_ttl or TTL.default()
        self.clock = clock
        self.invalidation_service = CacheInvalidationService()
        self.group_registry = CacheGroupRegistry()
        self._counters: Dict[CacheTier, Dict[str, int]] = {
            tier: {"hits": 0, "misses": 0, "errors": 0} for tier in self.backends
        }

    @property
    def tiers(self) -> List[CacheTier]:
        """Configured tiers in declaration order."""
        return [tier for tier in CacheTier if tier in self.backends]

    def resolve_tier(self, tier: TierLike) -> CacheTier:
        """Validate ``tier`` against the configured backends."""
        try:
            resolved = CacheTier(tier)
        except ValueError as e:
            raise CacheConfigurationException(
                f"Unknown cache tier: {tier}", config_key="tier", config_value=tier
            ) from e
        if resolved not in self.backends:
            raise CacheConfigurationException(
                f"Cache tier '{resolved.value}' is not configured",
                config_key="tier",
                config_value=resolved.value,
            )
        return resolved

    def resolve_tiers(self, tier: Optional[TierLike]) -> List[CacheTier]:
        if tier is None:
            return self.tiers
        return [self.resolve_tier(tier)]

    def resolve_ttl(self, ttl: TTLLike) -> TTL:
        """Coerce a TTL value; ints are milliseconds, None means the default."""
        if ttl is None:
            return self.default_ttl
        if isinstance(ttl, TTL):
            return ttl
        if isinstance(ttl, timedelta):
            return TTL.seconds(ttl.total_seconds())
        if isinstance(ttl, int) and not isinstance(ttl, bool):
            return TTL(ttl)
        raise TypeError(f"Unsupported TTL value: {ttl!r}")

    def _count(self, tier: CacheTier, counter: str, operation: str, result: str) -> None:
        self._counters[tier][counter] += 1
        record_operation(tier.value, operation, result)

    def register_group(self, tags: Iterable[Union[str, CacheTag]], tier: TierLike) -> None:
        """Bind cache tags to the tier their read-through entries live in."""
        self.group_registry.register(normalize_tags(tags), self.resolve_tier(tier))

    # Entry Operations

    async def set(
        self,
        key: str,
        data: Any,
        ttl: TTLLike = None,
        tier: TierLike = CacheTier.MEMORY,
        tags: Optional[Iterable[Union[str, CacheTag]]] = None,
    ) -> bool:
        """
        Store ``data`` under ``key`` in one tier, replacing any previous entry.

        Args:
            key: Cache key
            data: Payload to cache
            ttl: Time to live (default TTL when omitted; ints are milliseconds)
            tier: Target tier
            tags: Group labels for bulk invalidation

        Returns:
            True if the entry was stored, False if the tier refused it
        """
        cache_key = CacheKey(key).value
        cache_tier = self.resolve_tier(tier)
        cache_ttl = self.resolve_ttl(ttl)
        cache_tags = normalize_tags(tags)

        with tracer.start_as_current_span("cache_manager.set") as span:
            span.set_attribute("tier", cache_tier.value)
            span.set_attribute("ttl_ms", cache_ttl.milliseconds)
            span.set_attribute("tag_count", len(cache_tags))

            try:
                entry = CacheEntry.create(data, cache_ttl, self.clock(), cache_tags)
                await self.backends[cache_tier].set(cache_key, entry)
            except (StorageException, CacheSerializationException) as e:
                self._count(cache_tier, "errors", "set", "error")
                logger.warning(
                    f"Failed to cache {cache_key} in {cache_tier.value}: {e}",
                    extra={"tier": cache_tier.value, "key": cache_key},
                )
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                return False
            except MemoryError as e:
                self._count(cache_tier, "errors", "set", "error")
                logger.error(f"Out of memory caching {cache_key}: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, "out of memory"))
                return False

            record_operation(cache_tier.value, "set", "stored")
            logger.debug(
                f"Cached {cache_key} in {cache_tier.value}",
                extra={
                    "tier": cache_tier.value,
                    "key": cache_key,
                    "ttl_ms": cache_ttl.milliseconds,
                },
            )
            return True

    async def get_entry(
        self, key: str, tier: TierLike = CacheTier.MEMORY
    ) -> Optional[CacheEntry]:
        """
        Return the live entry for ``key``, or None.

        Expired and undecodable entries are deleted on the way out.
        """
        cache_key = CacheKey(key).value
        cache_tier = self.resolve_tier(tier)
        backend = self.backends[cache_tier]

        with tracer.start_as_current_span("cache_manager.get") as span:
            span.set_attribute("tier", cache_tier.value)

            try:
                entry = await backend.get(cache_key)
            except CacheSerializationException as e:
                logger.warning(
                    f"Discarding corrupt cache record {cache_key}: {e}",
                    extra={"tier": cache_tier.value, "key": cache_key},
                )
                await self._discard(backend, cache_tier, cache_key, "corrupt")
                self._count(cache_tier, "misses", "get", "corrupt")
                span.set_attribute("cache_hit", False)
                return None
            except StorageException as e:
                self._count(cache_tier, "errors", "get", "error")
                logger.warning(
                    f"Failed to read {cache_key} from {cache_tier.value}: {e}",
                    extra={"tier": cache_tier.value, "key": cache_key},
                )
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                span.set_attribute("cache_hit", False)
                return None

            if entry is None:
                self._count(cache_tier, "misses", "get", "miss")
                span.set_attribute("cache_hit", False)
                return None

            if entry.is_expired(self.clock()):
                await self._discard(backend, cache_tier, cache_key, "expired")
                self._count(cache_tier, "misses", "get", "expired")
                span.set_attribute("cache_hit", False)
                return None

            self._count(cache_tier, "hits", "get", "hit")
            span.set_attribute("cache_hit", True)
            return entry

    async def get(self, key: str, tier: TierLike = CacheTier.MEMORY) -> Optional[Any]:
        """Return the cached payload for ``key``, or None when absent or expired."""
        entry = await self.get_entry(key, tier)
        return entry.data if entry is not None else None

    async def delete(self, key: str, tier: TierLike = CacheTier.MEMORY) -> bool:
        """Remove ``key`` from one tier. No-op when absent."""
        cache_key = CacheKey(key).value
        cache_tier = self.resolve_tier(tier)

        try:
            removed = await self.backends[cache_tier].delete(cache_key)
        except StorageException as e:
            self._count(cache_tier, "errors", "delete", "error")
            logger.warning(f"Failed to delete {cache_key} from {cache_tier.value}: {e}")
            return False

        if removed:
            record_evictions(cache_tier.value, "deleted")
        return removed

    async def _discard(
        self, backend: TierBackend, tier: CacheTier, key: str, reason: str
    ) -> None:
        try:
            if await backend.delete(key):
                record_evictions(tier.value, reason)
        except StorageException as e:
            self._counters[tier]["errors"] += 1
            logger.warning(f"Failed to discard {reason} entry {key} from {tier.value}: {e}")

    # Bulk Operations

    async def clear(self, tier: Optional[TierLike] = None) -> None:
        """Remove every entry from one tier, or from all tiers."""
        for cache_tier in self.resolve_tiers(tier):
            try:
                await self.backends[cache_tier].clear()
                logger.info(f"Cleared cache tier {cache_tier.value}")
            except StorageException as e:
                self._count(cache_tier, "errors", "clear", "error")
                logger.error(f"Failed to clear cache tier {cache_tier.value}: {e}")

    async def invalidate_by_tag(
        self, tag: Union[str, CacheTag], tier: Optional[TierLike] = None
    ) -> int:
        """
        Delete every entry carrying ``tag`` in one tier, or in all tiers.

        Unknown tags are a no-op.

        Returns:
            Number of entries removed
        """
        cache_tag = CacheTag.coerce(tag).value
        total = 0

        with tracer.start_as_current_span("cache_manager.invalidate_by_tag") as span:
            span.set_attribute("tag", cache_tag)

            for cache_tier in self.resolve_tiers(tier):
                try:
                    count = await self.invalidation_service.invalidate_tag(
                        self.backends[cache_tier], cache_tier, cache_tag
                    )
                except StorageException as e:
                    self._count(cache_tier, "errors", "invalidate", "error")
                    logger.error(
                        f"Failed to invalidate tag {cache_tag} in {cache_tier.value}: {e}"
                    )
                    continue
                record_evictions(cache_tier.value, "tag", count)
                total += count

            span.set_attribute("invalidated_count", total)
            return total

    async def clear_by_tag(
        self, tag: Union[str, CacheTag], tier: Optional[TierLike] = None
    ) -> int:
        """Alias of :meth:`invalidate_by_tag`."""
        return await self.invalidate_by_tag(tag, tier)

    async def evict_tags(
        self,
        tags: Iterable[Union[str, CacheTag]],
        tier: Optional[TierLike] = None,
    ) -> int:
        """
        Invalidate a group of tags after a mutation.

        Without an explicit tier, each tag is purged from the tier it was
        registered for, or from every tier when it was never registered.
        """
        total = 0
        for cache_tag in sorted(normalize_tags(tags)):
            if tier is not None:
                tiers = [self.resolve_tier(tier)]
            else:
                tiers = self.group_registry.tiers_for(cache_tag, self.tiers)
            for cache_tier in tiers:
                total += await self.invalidate_by_tag(cache_tag, cache_tier)
        return total

    async def get_keys_by_tag(
        self, tag: Union[str, CacheTag], tier: TierLike = CacheTier.MEMORY
    ) -> List[str]:
        """Return live keys carrying ``tag`` in one tier."""
        cache_tag = CacheTag.coerce(tag).value
        cache_tier = self.resolve_tier(tier)
        try:
            return await self.backends[cache_tier].keys_for_tag(cache_tag, self.clock())
        except StorageException as e:
            self._count(cache_tier, "errors", "keys_by_tag", "error")
            logger.warning(f"Failed to list tag {cache_tag} in {cache_tier.value}: {e}")
            return []

    async def clear_expired(self, tier: Optional[TierLike] = None) -> Dict[str, int]:
        """
        Eagerly remove expired entries.

        Returns:
            Removed entry counts keyed by tier name; failed tiers are omitted
        """
        cleanup_counts: Dict[str, int] = {}
        now = self.clock()

        for cache_tier in self.resolve_tiers(tier):
            try:
                removed = await self.invalidation_service.cleanup_expired_entries(
                    self.backends[cache_tier], cache_tier, now
                )
            except StorageException as e:
                self._count(cache_tier, "errors", "clear_expired", "error")
                logger.error(
                    f"Failed to clean expired entries in {cache_tier.value}: {e}"
                )
                continue
            record_evictions(cache_tier.value, "expired", removed)
            cleanup_counts[cache_tier.value] = removed

        return cleanup_counts

    # Introspection

    async def get_stats(self) -> CacheStats:
        """Get size, keys and hit/miss counters per tier."""
        tiers: Dict[str, TierStats] = {}

        for cache_tier in self.tiers:
            counters = self._counters[cache_tier]
            try:
                keys = await self.backends[cache_tier].keys()
                available = True
            except StorageException as e:
                logger.warning(f"Failed to list cache tier {cache_tier.value}: {e}")
                keys = []
                available = False

            tiers[cache_tier.value] = TierStats(
                size=len(keys),
                keys=keys,
                hits=counters["hits"],
                misses=counters["misses"],
                errors=counters["errors"],
                available=available,
            )

        return CacheStats(tiers=tiers)

    async def close(self) -> None:
        """Close tier backends and release their resources."""
        for cache_tier, backend in self.backends.items():
            try:
                await backend.close()
            except Exception as e:
                logger.error(f"Failed to close cache tier {cache_tier.value}: {e}")
        logger.info("Cache manager closed")
