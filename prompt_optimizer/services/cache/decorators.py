"""
Cache Decorators

Read-through and write-invalidate wrappers for async operations.

Both take the cache manager explicitly. To cache instance methods, wrap the
bound method so ``self`` does not take part in key derivation.
"""

import asyncio
import functools
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Set, Union

from ...domain.cache.value_objects import TTL, CacheTag, CacheTier, normalize_tags
from .cache_manager import CacheManager, TierLike, TTLLike
from .keys import derive_key, operation_name

logger = logging.getLogger(__name__)

AsyncCallable = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class CacheOptions:
    """Resolved read-through declaration."""

    operation: str
    ttl: TTL
    tier: CacheTier
    tags: frozenset
    key_generator: Optional[Callable[..., str]] = None

    def key_for(self, *args: Any, **kwargs: Any) -> str:
        if self.key_generator is not None:
            return self.key_generator(*args, **kwargs)
        return derive_key(self.operation, *args, **kwargs)


def _ensure_coroutine_function(func: Any, decorator: str) -> None:
    if not inspect.iscoroutinefunction(func):
        raise TypeError(
            f"@{decorator} requires an async callable, got {operation_name(func)}"
        )


def _forget(pending: Set["asyncio.Task[Any]"], task: "asyncio.Task[Any]") -> None:
    pending.discard(task)
    if not task.cancelled() and task.exception() is not None:
        # Mark the exception retrieved; the awaiting caller, if any, re-raises it
        logger.debug(f"Cache fill failed: {task.exception()!r}")


def cache(
    manager: CacheManager,
    *,
    ttl: TTLLike = None,
    tier: TierLike = CacheTier.MEMORY,
    tags: Iterable[Union[str, CacheTag]] = (),
    key_generator: Optional[Callable[..., str]] = None,
    operation: Optional[str] = None,
) -> Callable[[AsyncCallable], AsyncCallable]:
    """
    Read-through cache decorator.

    On a hit the wrapped operation is not invoked. On a miss its result is
    stored with the declared TTL, tier and tags, then returned. Failures
    propagate and nothing is cached.

    Args:
        manager: Cache manager holding the entries
        ttl: Entry TTL (manager default when omitted)
        tier: Tier to read and fill
        tags: Invalidation groups of the cached results
        key_generator: Replaces default key derivation
        operation: Operation identity for key derivation

    Raises:
        CacheConfigurationException: If the tier is not configured or a tag
            is already bound to another tier
    """
    cache_tier = manager.resolve_tier(tier)
    cache_ttl = manager.resolve_ttl(ttl)
    cache_tags = normalize_tags(tags)
    manager.register_group(cache_tags, cache_tier)

    def decorator(func: AsyncCallable) -> AsyncCallable:
        _ensure_coroutine_function(func, "cache")

        options = CacheOptions(
            operation=operation or operation_name(func),
            ttl=cache_ttl,
            tier=cache_tier,
            tags=cache_tags,
            key_generator=key_generator,
        )
        pending: Set["asyncio.Task[Any]"] = set()

        async def fill(key: str, args: tuple, kwargs: dict) -> Any:
            result = await func(*args, **kwargs)
            await manager.set(key, result, options.ttl, options.tier, options.tags)
            return result

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            key = options.key_for(*args, **kwargs)

            entry = await manager.get_entry(key, options.tier)
            if entry is not None:
                logger.debug(
                    f"Cache hit for {options.operation}",
                    extra={"key": key, "tier": options.tier.value},
                )
                return entry.data

            logger.debug(
                f"Cache miss for {options.operation}",
                extra={"key": key, "tier": options.tier.value},
            )
            # The fill outlives a cancelled caller and still populates the cache
            task = asyncio.ensure_future(fill(key, args, kwargs))
            pending.add(task)
            task.add_done_callback(functools.partial(_forget, pending))
            return await asyncio.shield(task)

        wrapper.cache_options = options  # type: ignore[attr-defined]
        return wrapper

    return decorator


def cache_evict(
    manager: CacheManager,
    tags: Iterable[Union[str, CacheTag]],
    tier: Optional[TierLike] = None,
) -> Callable[[AsyncCallable], AsyncCallable]:
    """
    Write-invalidate decorator.

    Runs the wrapped mutation and, only if it succeeds, invalidates every
    tag. Without ``tier`` each tag is purged from the tier its read-through
    declarations registered it for.

    Args:
        manager: Cache manager holding the entries
        tags: Groups to invalidate after a successful mutation
        tier: Restrict invalidation to one tier
    """
    evict_tags = normalize_tags(tags)
    evict_tier = manager.resolve_tier(tier) if tier is not None else None

    def decorator(func: AsyncCallable) -> AsyncCallable:
        _ensure_coroutine_function(func, "cache_evict")
        name = operation_name(func)

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            result = await func(*args, **kwargs)

            removed = await asyncio.shield(manager.evict_tags(evict_tags, evict_tier))
            logger.debug(
                f"Evicted {removed} cache entries after {name}",
                extra={"tags": sorted(evict_tags), "count": removed},
            )
            return result

        wrapper.evict_tags = evict_tags  # type: ignore[attr-defined]
        return wrapper

    return decorator
