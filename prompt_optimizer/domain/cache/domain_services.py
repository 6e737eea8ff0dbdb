"""
Cache Domain Services

Business logic services for cache domain operations.
Implements tag invalidation, expiry cleanup and the tag-to-tier registry
on top of the tier backend interface.
"""

import logging
from typing import Dict, List, Set

from opentelemetry import trace

from .exceptions import CacheConfigurationException, CacheSerializationException
from .repository_interfaces import TierBackend
from .value_objects import CacheTier

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CacheInvalidationService:
    """
    Domain service for cache invalidation strategies.

    Works on one tier backend at a time; storage failures are raised to
    the caller, which decides whether to absorb them.
    """

    async def invalidate_tag(
        self,
        backend: TierBackend,
        tier: CacheTier,
        tag: str,
        reason: str = "tag_invalidation",
    ) -> int:
        """
        Delete every entry in ``backend`` that carries ``tag``.

        Args:
            backend: Tier backend to purge
            tier: Tier the backend serves (for logging)
            tag: Tag to match
            reason: Reason for invalidation

        Returns:
            Number of entries removed
        """
        with tracer.start_as_current_span("cache.invalidate_tag") as span:
            span.set_attribute("tier", tier.value)
            span.set_attribute("tag", tag)
            span.set_attribute("reason", reason)

            try:
                invalidated_count = 0
                for key in await backend.keys_for_tag(tag):
                    if await backend.delete(key):
                        invalidated_count += 1

                span.set_attribute("invalidated_count", invalidated_count)
                if invalidated_count:
                    logger.info(
                        f"Invalidated {invalidated_count} cache entries by tag {tag}",
                        extra={
                            "tier": tier.value,
                            "tag": tag,
                            "reason": reason,
                            "count": invalidated_count,
                        },
                    )

                return invalidated_count

            except Exception as e:
                logger.error(f"Failed to invalidate tag {tag} in {tier.value}: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

    async def cleanup_expired_entries(
        self, backend: TierBackend, tier: CacheTier, now: int
    ) -> int:
        """
        Remove entries of one tier that are expired at ``now``.

        Undecodable records are removed as well; they can never be served.

        Returns:
            Number of entries removed
        """
        with tracer.start_as_current_span("cache.cleanup_expired") as span:
            span.set_attribute("tier", tier.value)

            removed = 0
            # Snapshot keys first so deletion does not disturb enumeration
            for key in await backend.keys():
                try:
                    entry = await backend.get(key)
                except CacheSerializationException:
                    logger.warning(
                        f"Removing corrupt cache record {key}",
                        extra={"tier": tier.value, "key": key},
                    )
                    if await backend.delete(key):
                        removed += 1
                    continue

                if entry is not None and entry.is_expired(now):
                    if await backend.delete(key):
                        removed += 1

            span.set_attribute("removed_count", removed)
            if removed:
                logger.debug(
                    f"Cleaned up {removed} expired entries from {tier.value}",
                    extra={"tier": tier.value, "count": removed},
                )
            return removed


class CacheGroupRegistry:
    """
    Records which tier each cache tag lives in.

    Read-through declarations register their tags; a tag belongs to exactly
    one tier so write-invalidation knows where to purge.
    """

    def __init__(self) -> None:
        self._tier_by_tag: Dict[str, CacheTier] = {}

    def register(self, tags, tier: CacheTier) -> None:
        """Bind each tag to ``tier``; conflicting bindings are rejected."""
        tier = CacheTier(tier)
        for tag in tags:
            current = self._tier_by_tag.get(tag)
            if current is not None and current != tier:
                raise CacheConfigurationException(
                    f"Cache tag '{tag}' already bound to tier '{current.value}', "
                    f"cannot also bind it to '{tier.value}'",
                    config_key=tag,
                    config_value=tier.value,
                )

        for tag in tags:
            self._tier_by_tag[tag] = tier

    def tiers_for(self, tag: str, configured: List[CacheTier]) -> List[CacheTier]:
        """Tiers to purge for ``tag``: its bound tier, else every configured tier."""
        tier = self._tier_by_tag.get(tag)
        if tier is None:
            return list(configured)
        return [tier] if tier in configured else []

    def tags(self) -> Set[str]:
        return set(self._tier_by_tag)
