"""
Cache Value Objects

Immutable value objects for the cache domain.
Provides type safety and validation for tiers, keys, tags and TTLs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class CacheTier(str, Enum):
    """Independent storage tiers a cache entry can live in."""

    MEMORY = "memory"  # In-process, lost on restart
    PERSISTENT = "persistent"  # Durable across sessions
    SESSION = "session"  # Durable for one session only


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Any non-empty string is a valid key; the named factories build the
    keys the prompt API client reads through.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate cache key type."""
        if not isinstance(self.value, str):
            raise TypeError(
                f"Cache key must be a string, got {type(self.value).__name__}"
            )
        if not self.value:
            raise ValueError("Cache key cannot be empty")

    @classmethod
    def prompt_detail(cls, prompt_id: Union[str, UUID]) -> "CacheKey":
        """Create single prompt cache key."""
        return cls(f"prompts:detail:{prompt_id}")

    @classmethod
    def user_stats(cls) -> "CacheKey":
        """Create user statistics cache key."""
        return cls("prompts:stats")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache expiration.

    Stored in milliseconds, matching the persisted entry record.
    """

    milliseconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.milliseconds <= 0:
            raise ValueError("TTL must be positive")
        if self.milliseconds > 86400 * 365 * 1000:  # Max 1 year
            raise ValueError("TTL too large (max 1 year)")

    @classmethod
    def seconds(cls, seconds: float) -> "TTL":
        """Create TTL from seconds."""
        return cls(int(seconds * 1000))

    @classmethod
    def minutes(cls, minutes: float) -> "TTL":
        """Create TTL from minutes."""
        return cls(int(minutes * 60 * 1000))

    @classmethod
    def hours(cls, hours: float) -> "TTL":
        """Create TTL from hours."""
        return cls(int(hours * 3600 * 1000))

    @classmethod
    def days(cls, days: float) -> "TTL":
        """Create TTL from days."""
        return cls(int(days * 86400 * 1000))

    # Common TTL presets
    @classmethod
    def default(cls) -> "TTL":
        """Default entry TTL (5 minutes)."""
        return cls.minutes(5)

    @classmethod
    def prompt_list(cls) -> "TTL":
        """Prompt listing TTL (10 minutes)."""
        return cls.minutes(10)

    @classmethod
    def user_stats(cls) -> "TTL":
        """User statistics TTL (15 minutes)."""
        return cls.minutes(15)

    @classmethod
    def prompt_detail(cls) -> "TTL":
        """Single prompt TTL (30 minutes)."""
        return cls.minutes(30)

    @classmethod
    def models(cls) -> "TTL":
        """Available models TTL (30 minutes)."""
        return cls.minutes(30)

    @classmethod
    def preload(cls) -> "TTL":
        """Preloaded data TTL (30 minutes)."""
        return cls.minutes(30)

    @property
    def total_seconds(self) -> float:
        return self.milliseconds / 1000

    def __str__(self) -> str:
        return f"{self.milliseconds}ms"


@dataclass(frozen=True)
class CacheTag:
    """
    Cache tag value object for cache invalidation groups.

    Allows invalidating multiple cache entries by tag.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate tag value."""
        if not self.value:
            raise ValueError("Cache tag cannot be empty")
        if len(self.value) > 100:
            raise ValueError("Cache tag too long (max 100 characters)")
        if any(char.isspace() for char in self.value):
            raise ValueError("Cache tag cannot contain whitespace")

    @classmethod
    def prompts(cls) -> "CacheTag":
        return cls("prompts")

    @classmethod
    def prompt_detail(cls) -> "CacheTag":
        return cls("prompt-detail")

    @classmethod
    def user_data(cls) -> "CacheTag":
        return cls("user-data")

    @classmethod
    def user_stats(cls) -> "CacheTag":
        return cls("user-stats")

    @classmethod
    def models(cls) -> "CacheTag":
        return cls("models")

    @classmethod
    def coerce(cls, tag: Union[str, "CacheTag"]) -> "CacheTag":
        """Accept either a raw string or a CacheTag."""
        if isinstance(tag, CacheTag):
            return tag
        return cls(tag)

    def __str__(self) -> str:
        return self.value


TagLike = Union[str, CacheTag]


def normalize_tags(tags) -> frozenset:
    """Validate a tag collection and return it as a frozenset of strings."""
    if not tags:
        return frozenset()
    if isinstance(tags, (str, CacheTag)):
        tags = [tags]
    return frozenset(CacheTag.coerce(tag).value for tag in tags)


class TierStats(BaseModel):
    """Introspection snapshot for a single tier."""

    size: int = Field(0, ge=0, description="Number of stored entries")
    keys: List[str] = Field(default_factory=list, description="Stored keys")
    hits: int = Field(0, ge=0, description="Reads served from this tier")
    misses: int = Field(0, ge=0, description="Reads that found nothing usable")
    errors: int = Field(0, ge=0, description="Absorbed storage failures")
    available: bool = Field(True, description="Whether the tier could be listed")


class CacheStats(BaseModel):
    """Cache statistics across all configured tiers."""

    tiers: Dict[str, TierStats] = Field(default_factory=dict)

    @field_validator("tiers")
    @classmethod
    def validate_tier_names(cls, v):
        allowed = {tier.value for tier in CacheTier}
        unknown = set(v) - allowed
        if unknown:
            raise ValueError(f"Unknown cache tiers: {sorted(unknown)}")
        return v

    def __getitem__(self, tier: Union[str, CacheTier]) -> TierStats:
        return self.tiers[CacheTier(tier).value]

    @property
    def total_size(self) -> int:
        return sum(stats.size for stats in self.tiers.values())
