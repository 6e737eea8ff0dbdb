"""
Unit tests for the read-through and write-invalidate decorators.
"""

import asyncio

import pytest

from prompt_optimizer.domain.cache.exceptions import CacheConfigurationException
from prompt_optimizer.domain.cache.value_objects import TTL, CacheTier
from prompt_optimizer.services.cache.decorators import CacheOptions, cache, cache_evict
from prompt_optimizer.services.cache.keys import derive_key


class FakePromptService:
    """Counts calls to simulated remote operations."""

    def __init__(self):
        self.calls = 0
        self.prompts = ["first"]

    async def list_prompts(self, page=1, **filters):
        self.calls += 1
        return {"page": page, "filters": filters, "data": list(self.prompts)}

    async def create_prompt(self, text):
        self.prompts.append(text)
        return {"text": text}

    async def fail(self, *args):
        self.calls += 1
        raise RuntimeError("remote failure")


class TestCacheDecorator:
    """Test the read-through decorator."""

    @pytest.fixture
    def service(self):
        return FakePromptService()

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, cache_manager, service):
        """The wrapped operation runs once; the second call is a hit."""
        list_prompts = cache(cache_manager, ttl=TTL.prompt_list(), tags=["prompts"])(
            service.list_prompts
        )

        first = await list_prompts(1, search="x")
        second = await list_prompts(1, search="x")

        assert first == second
        assert service.calls == 1

    @pytest.mark.asyncio
    async def test_argument_values_select_entries(self, cache_manager, service):
        list_prompts = cache(cache_manager)(service.list_prompts)

        await list_prompts(1)
        await list_prompts(2)
        await list_prompts(page=1)

        assert service.calls == 3

    @pytest.mark.asyncio
    async def test_entry_stored_with_declaration(self, cache_manager, clock, service):
        list_prompts = cache(
            cache_manager,
            ttl=TTL.prompt_list(),
            tier=CacheTier.SESSION,
            tags=["prompts", "user-data"],
            operation="prompts.list",
        )(service.list_prompts)

        await list_prompts(3)

        entry = await cache_manager.get_entry(
            derive_key("prompts.list", 3), CacheTier.SESSION
        )
        assert entry.ttl == TTL.prompt_list().milliseconds
        assert entry.tags == frozenset({"prompts", "user-data"})
        assert entry.stored_at == clock.now
        assert (await cache_manager.get_stats())[CacheTier.MEMORY].size == 0

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, cache_manager, clock, service):
        list_prompts = cache(cache_manager, ttl=1000)(service.list_prompts)

        await list_prompts()
        clock.advance(1001)
        await list_prompts()

        assert service.calls == 2

    @pytest.mark.asyncio
    async def test_key_generator(self, cache_manager, service):
        list_prompts = cache(
            cache_manager, key_generator=lambda page=1, **filters: f"prompts:list:p{page}"
        )(service.list_prompts)

        await list_prompts(1, search="a")
        await list_prompts(1, search="b")

        assert service.calls == 1
        assert await cache_manager.get("prompts:list:p1") is not None

    @pytest.mark.asyncio
    async def test_generated_keys_with_spaces_and_length(self, cache_manager):
        calls = []

        async def search(query):
            calls.append(query)
            return [query]

        cached_search = cache(
            cache_manager,
            tier=CacheTier.PERSISTENT,
            key_generator=lambda query: f"prompts:search:{query}",
        )(search)
        long_query = "x" * 300

        for _ in range(2):
            assert await cached_search("hello world") == ["hello world"]
            assert await cached_search(long_query) == [long_query]

        assert calls == ["hello world", long_query]
        assert await cache_manager.get(
            "prompts:search:hello world", CacheTier.PERSISTENT
        ) == ["hello world"]

    @pytest.mark.asyncio
    async def test_failure_propagates_and_nothing_cached(self, cache_manager, service):
        fail = cache(cache_manager, operation="fail")(service.fail)

        for _ in range(2):
            with pytest.raises(RuntimeError, match="remote failure"):
                await fail(1)

        assert service.calls == 2
        assert (await cache_manager.get_stats()).total_size == 0

    @pytest.mark.asyncio
    async def test_cached_none_is_a_hit(self, cache_manager):
        calls = 0

        async def lookup():
            nonlocal calls
            calls += 1
            return None

        cached_lookup = cache(cache_manager)(lookup)

        assert await cached_lookup() is None
        assert await cached_lookup() is None
        assert calls == 1

    @pytest.mark.asyncio
    async def test_cancelled_caller_still_populates(self, cache_manager):
        """A fill started by a cancelled caller completes and serves later calls."""
        gate = asyncio.Event()
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            await gate.wait()
            return "value"

        cached_fetch = cache(cache_manager, operation="fetch")(fetch)

        caller = asyncio.create_task(cached_fetch())
        for _ in range(10):
            if calls:
                break
            await asyncio.sleep(0)
        assert calls == 1

        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        gate.set()
        for _ in range(10):
            if await cache_manager.get_entry(derive_key("fetch")) is not None:
                break
            await asyncio.sleep(0)

        assert await cached_fetch() == "value"
        assert calls == 1

    def test_cache_options_exposed(self, cache_manager, service):
        list_prompts = cache(
            cache_manager, ttl=600_000, tags=["prompts"], operation="prompts.list"
        )(service.list_prompts)

        options = list_prompts.cache_options
        assert isinstance(options, CacheOptions)
        assert options.operation == "prompts.list"
        assert options.ttl == TTL.prompt_list()
        assert options.tier == CacheTier.MEMORY
        assert options.tags == frozenset({"prompts"})

    def test_default_operation_name(self, cache_manager, service):
        list_prompts = cache(cache_manager)(service.list_prompts)

        assert list_prompts.cache_options.operation.endswith(
            "FakePromptService.list_prompts"
        )
        assert list_prompts.__name__ == "list_prompts"

    def test_sync_function_rejected(self, cache_manager):
        def compute():
            return 1

        with pytest.raises(TypeError, match="requires an async callable"):
            cache(cache_manager)(compute)

    def test_tag_bound_to_one_tier(self, cache_manager, service):
        cache(cache_manager, tags=["prompts"])(service.list_prompts)

        with pytest.raises(CacheConfigurationException):
            cache(cache_manager, tier=CacheTier.SESSION, tags=["prompts"])

    def test_unconfigured_tier_rejected(self, memory_only_manager):
        with pytest.raises(CacheConfigurationException):
            cache(memory_only_manager, tier=CacheTier.PERSISTENT)


class TestCacheEvictDecorator:
    """Test the write-invalidate decorator."""

    @pytest.fixture
    def service(self):
        return FakePromptService()

    @pytest.mark.asyncio
    async def test_mutation_forces_refetch(self, cache_manager, service):
        list_prompts = cache(cache_manager, tags=["prompts", "user-data"])(
            service.list_prompts
        )
        create_prompt = cache_evict(cache_manager, ["prompts"])(service.create_prompt)

        assert (await list_prompts())["data"] == ["first"]

        result = await create_prompt("second")

        assert result == {"text": "second"}
        assert (await list_prompts())["data"] == ["first", "second"]
        assert service.calls == 2

    @pytest.mark.asyncio
    async def test_failed_mutation_keeps_cache(self, cache_manager, service):
        list_prompts = cache(cache_manager, tags=["prompts"])(service.list_prompts)
        fail = cache_evict(cache_manager, ["prompts"])(service.fail)

        await list_prompts()
        with pytest.raises(RuntimeError):
            await fail()

        await list_prompts()
        assert service.calls == 2  # one list fetch, one failed mutation

    @pytest.mark.asyncio
    async def test_evicts_from_registered_tier(self, cache_manager, service):
        """Without a tier, each tag is purged where it was declared."""
        cache(cache_manager, tier=CacheTier.SESSION, tags=["user-stats"])(
            service.list_prompts
        )
        await cache_manager.set("stats", 1, tier=CacheTier.SESSION, tags=["user-stats"])
        await cache_manager.set("stray", 1, tags=["user-stats"])

        mutate = cache_evict(cache_manager, ["user-stats"])(service.create_prompt)
        await mutate("x")

        assert await cache_manager.get("stats", CacheTier.SESSION) is None
        assert await cache_manager.get("stray") == 1

    @pytest.mark.asyncio
    async def test_unregistered_tag_evicted_everywhere(self, cache_manager, service):
        for tier in CacheTier:
            await cache_manager.set("k", 1, tier=tier, tags=["models"])

        mutate = cache_evict(cache_manager, ["models"])(service.create_prompt)
        await mutate("x")

        assert (await cache_manager.get_stats()).total_size == 0

    @pytest.mark.asyncio
    async def test_explicit_tier(self, cache_manager, service):
        for tier in CacheTier:
            await cache_manager.set("k", 1, tier=tier, tags=["models"])

        mutate = cache_evict(cache_manager, ["models"], tier=CacheTier.PERSISTENT)(
            service.create_prompt
        )
        await mutate("x")

        assert await cache_manager.get("k", CacheTier.PERSISTENT) is None
        assert await cache_manager.get("k") == 1

    def test_sync_function_rejected(self, cache_manager):
        with pytest.raises(TypeError):
            cache_evict(cache_manager, ["prompts"])(lambda: None)

    def test_evict_tags_exposed(self, cache_manager, service):
        mutate = cache_evict(cache_manager, ["prompts", "user-data"])(
            service.create_prompt
        )
        assert mutate.evict_tags == frozenset({"prompts", "user-data"})
