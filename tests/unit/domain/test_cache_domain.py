"""
Unit tests for Cache Domain Models and Services.

Tests value objects, the cache entry entity, the tag index and the
tag-to-tier registry.
"""

import json
from datetime import datetime

import pytest
from uuid import uuid4

from prompt_optimizer.domain.cache.domain_services import CacheGroupRegistry
from prompt_optimizer.domain.cache.entities import CacheEntry
from prompt_optimizer.domain.cache.exceptions import (
    CacheConfigurationException,
    CacheSerializationException,
)
from prompt_optimizer.domain.cache.tag_index import TagIndex
from prompt_optimizer.domain.cache.value_objects import (
    TTL,
    CacheKey,
    CacheStats,
    CacheTag,
    CacheTier,
    TierStats,
    normalize_tags,
)


class TestCacheKey:
    """Test CacheKey value object."""

    def test_prompt_detail_key(self):
        """Test prompt detail cache key creation."""
        prompt_id = uuid4()
        key = CacheKey.prompt_detail(prompt_id)
        assert key.value == f"prompts:detail:{prompt_id}"
        assert str(key) == f"prompts:detail:{prompt_id}"

    def test_user_stats_key(self):
        assert CacheKey.user_stats().value == "prompts:stats"

    def test_any_non_empty_string_accepted(self):
        assert CacheKey("prompts:search:hello world").value == "prompts:search:hello world"
        assert len(CacheKey("x" * 1000).value) == 1000

    def test_invalid_key_empty(self):
        """Test invalid empty key."""
        with pytest.raises(ValueError, match="Cache key cannot be empty"):
            CacheKey("")

    def test_invalid_key_type(self):
        with pytest.raises(TypeError, match="must be a string"):
            CacheKey(42)


class TestTTL:
    """Test TTL value object."""

    def test_factories(self):
        assert TTL.seconds(2).milliseconds == 2000
        assert TTL.minutes(1).milliseconds == 60_000
        assert TTL.hours(1).milliseconds == 3_600_000
        assert TTL.days(1).milliseconds == 86_400_000

    def test_presets(self):
        """Preset TTLs used by the prompt API."""
        assert TTL.default() == TTL.minutes(5)
        assert TTL.prompt_list() == TTL.minutes(10)
        assert TTL.user_stats() == TTL.minutes(15)
        assert TTL.prompt_detail() == TTL.minutes(30)
        assert TTL.models() == TTL.minutes(30)
        assert TTL.preload() == TTL.minutes(30)

    def test_total_seconds(self):
        assert TTL(1500).total_seconds == 1.5

    def test_invalid_ttl_zero(self):
        """Test invalid zero TTL."""
        with pytest.raises(ValueError, match="TTL must be positive"):
            TTL(0)

    def test_invalid_ttl_too_large(self):
        """Test invalid TTL that's too large."""
        with pytest.raises(ValueError, match="TTL too large"):
            TTL.days(366)


class TestCacheTag:
    """Test CacheTag value object."""

    def test_named_tags(self):
        assert CacheTag.prompts().value == "prompts"
        assert CacheTag.prompt_detail().value == "prompt-detail"
        assert CacheTag.user_data().value == "user-data"
        assert CacheTag.user_stats().value == "user-stats"
        assert CacheTag.models().value == "models"

    def test_coerce(self):
        tag = CacheTag("prompts")
        assert CacheTag.coerce(tag) is tag
        assert CacheTag.coerce("prompts") == tag

    def test_invalid_tag(self):
        with pytest.raises(ValueError, match="Cache tag cannot be empty"):
            CacheTag("")
        with pytest.raises(ValueError, match="whitespace"):
            CacheTag("user data")

    def test_normalize_tags(self):
        assert normalize_tags(None) == frozenset()
        assert normalize_tags("prompts") == frozenset({"prompts"})
        assert normalize_tags([CacheTag.prompts(), "models", "prompts"]) == frozenset(
            {"prompts", "models"}
        )


class TestCacheEntry:
    """Test CacheEntry entity."""

    def test_create(self):
        entry = CacheEntry.create({"a": 1}, TTL(1000), now=5000, tags=["prompts"])

        assert entry.data == {"a": 1}
        assert entry.stored_at == 5000
        assert entry.ttl == 1000
        assert entry.tags == frozenset({"prompts"})
        assert entry.expires_at == 6000

    def test_expiry_boundary(self):
        """An entry is live at exactly ttl elapsed and expired just after."""
        entry = CacheEntry.create("x", TTL(1000), now=0)

        assert not entry.is_expired(999)
        assert not entry.is_expired(1000)
        assert entry.is_expired(1001)

    def test_has_tag(self):
        entry = CacheEntry.create("x", TTL(1000), now=0, tags=["prompts"])
        assert entry.has_tag("prompts")
        assert entry.has_tag(CacheTag.prompts())
        assert not entry.has_tag("models")

    def test_invalid_entry(self):
        with pytest.raises(ValueError, match="TTL must be positive"):
            CacheEntry(data=None, stored_at=0, ttl=0)
        with pytest.raises(ValueError, match="timestamp cannot be negative"):
            CacheEntry(data=None, stored_at=-1, ttl=10)

    def test_record_layout(self):
        """Persisted record uses the shared field names."""
        entry = CacheEntry.create(
            [1, 2], TTL(60_000), now=1000, tags=["prompts", "user-data"]
        )
        record = json.loads(entry.encode())

        assert record == {
            "data": [1, 2],
            "storedAt": 1000,
            "ttl": 60_000,
            "tags": ["prompts", "user-data"],
        }
        assert CacheEntry.decode(entry.encode()) == entry

    def test_encode_rejects_non_json_data(self):
        entry = CacheEntry.create({"when": datetime(2024, 1, 2)}, TTL(1000), now=0)

        with pytest.raises(CacheSerializationException) as exc_info:
            entry.encode(key="k")

        assert exc_info.value.details["key"] == "k"

    def test_decode_record_without_tags(self):
        entry = CacheEntry.decode('{"data": null, "storedAt": 1, "ttl": 2}')
        assert entry.data is None
        assert entry.tags == frozenset()

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2]",
            '{"data": 1, "ttl": 5}',
            '{"data": 1, "storedAt": "yesterday", "ttl": 5}',
            '{"data": 1, "storedAt": 1, "ttl": true}',
            '{"data": 1, "storedAt": 1, "ttl": 5, "tags": "prompts"}',
            '{"data": 1, "storedAt": 1, "ttl": -5}',
        ],
    )
    def test_decode_corrupt_record(self, raw):
        with pytest.raises(CacheSerializationException) as exc_info:
            CacheEntry.decode(raw, key="k")

        assert exc_info.value.error_code == "CACHE_SERIALIZATION_ERROR"
        assert exc_info.value.details["key"] == "k"


class TestCacheStats:
    """Test cache statistics models."""

    def test_tier_lookup(self):
        stats = CacheStats(
            tiers={
                "memory": TierStats(size=2, keys=["a", "b"]),
                "session": TierStats(size=1, keys=["c"]),
            }
        )

        assert stats[CacheTier.MEMORY].keys == ["a", "b"]
        assert stats["session"].size == 1
        assert stats.total_size == 3

    def test_unknown_tier_rejected(self):
        with pytest.raises(ValueError, match="Unknown cache tiers"):
            CacheStats(tiers={"disk": TierStats()})


class TestTagIndex:
    """Test TagIndex reverse index."""

    @pytest.fixture
    def index(self):
        index = TagIndex()
        index.add("k1", {"prompts", "user-data"})
        index.add("k2", {"prompts"})
        return index

    def test_keys_for(self, index):
        assert index.keys_for("prompts") == {"k1", "k2"}
        assert index.keys_for("user-data") == {"k1"}
        assert index.keys_for("unknown") == set()

    def test_keys_for_returns_copy(self, index):
        index.keys_for("prompts").clear()
        assert index.keys_for("prompts") == {"k1", "k2"}

    def test_remove_drops_every_membership(self, index):
        index.remove("k1")

        assert index.tags_for("k1") == frozenset()
        assert index.keys_for("prompts") == {"k2"}
        assert "user-data" not in index
        assert len(index) == 1

    def test_add_replaces_memberships(self, index):
        index.add("k1", {"models"})

        assert index.tags_for("k1") == frozenset({"models"})
        assert index.keys_for("prompts") == {"k2"}
        assert "user-data" not in index

    def test_add_without_tags(self, index):
        index.add("k2", [])
        assert index.keys_for("prompts") == {"k1"}
        assert index.tags_for("k2") == frozenset()

    def test_clear(self, index):
        index.clear()
        assert len(index) == 0
        assert index.tags() == set()


class TestCacheGroupRegistry:
    """Test tag to tier bindings."""

    def test_register_and_lookup(self):
        registry = CacheGroupRegistry()
        registry.register({"prompts", "user-data"}, CacheTier.MEMORY)

        assert registry.tiers_for("prompts", list(CacheTier)) == [CacheTier.MEMORY]
        assert registry.tags() == {"prompts", "user-data"}

    def test_reregister_same_tier(self):
        registry = CacheGroupRegistry()
        registry.register({"prompts"}, CacheTier.SESSION)
        registry.register({"prompts"}, CacheTier.SESSION)

        assert registry.tiers_for("prompts", list(CacheTier)) == [CacheTier.SESSION]

    def test_conflicting_tier_rejected(self):
        """A tag can only live in one tier."""
        registry = CacheGroupRegistry()
        registry.register({"prompts"}, CacheTier.MEMORY)

        with pytest.raises(CacheConfigurationException) as exc_info:
            registry.register({"models", "prompts"}, CacheTier.PERSISTENT)

        assert exc_info.value.error_code == "CACHE_CONFIGURATION_ERROR"
        # Rejected declarations leave no partial bindings
        assert "models" not in registry.tags()

    def test_tiers_for(self):
        registry = CacheGroupRegistry()
        registry.register({"prompts"}, CacheTier.SESSION)
        configured = [CacheTier.MEMORY, CacheTier.SESSION]

        assert registry.tiers_for("prompts", configured) == [CacheTier.SESSION]
        assert registry.tiers_for("models", configured) == configured
        assert registry.tiers_for("prompts", [CacheTier.MEMORY]) == []
