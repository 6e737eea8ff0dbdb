"""
Cache Domain Entities

Core domain entity for cache storage.
Encapsulates expiry rules and the persisted record format.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Union

from .exceptions import CacheSerializationException
from .value_objects import TTL, CacheTag, normalize_tags


@dataclass(frozen=True)
class CacheEntry:
    """
    Cached payload with its creation time, TTL and tag set.

    Entries are never updated in place; a new entry replaces the old one.
    Times are epoch milliseconds.
    """

    data: Any
    stored_at: int
    ttl: int
    tags: frozenset = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        """Validate entry metadata."""
        if self.ttl <= 0:
            raise ValueError("Entry TTL must be positive")
        if self.stored_at < 0:
            raise ValueError("Entry timestamp cannot be negative")

    @classmethod
    def create(
        cls,
        data: Any,
        ttl: TTL,
        now: int,
        tags: Optional[Iterable[Union[str, CacheTag]]] = None,
    ) -> "CacheEntry":
        """Create new cache entry stored at ``now``."""
        return cls(
            data=data,
            stored_at=now,
            ttl=ttl.milliseconds,
            tags=normalize_tags(tags),
        )

    @property
    def expires_at(self) -> int:
        return self.stored_at + self.ttl

    def is_expired(self, now: int) -> bool:
        """An entry is expired once strictly more than ``ttl`` has elapsed."""
        return now - self.stored_at > self.ttl

    def has_tag(self, tag: Union[str, CacheTag]) -> bool:
        return str(tag) in self.tags

    def to_record(self) -> Dict[str, Any]:
        """Return the persisted record layout."""
        return {
            "data": self.data,
            "storedAt": self.stored_at,
            "ttl": self.ttl,
            "tags": sorted(self.tags),
        }

    @classmethod
    def from_record(cls, record: Any, key: Optional[str] = None) -> "CacheEntry":
        """Rebuild an entry from its persisted record."""
        if not isinstance(record, dict):
            raise CacheSerializationException(
                "Cache record is not an object", key=key
            )

        missing = {"data", "storedAt", "ttl"} - set(record)
        if missing:
            raise CacheSerializationException(
                f"Cache record missing fields: {sorted(missing)}", key=key
            )

        stored_at = record["storedAt"]
        ttl = record["ttl"]
        tags = record.get("tags") or []
        if isinstance(stored_at, bool) or not isinstance(stored_at, int):
            raise CacheSerializationException("Invalid storedAt value", key=key)
        if isinstance(ttl, bool) or not isinstance(ttl, int):
            raise CacheSerializationException("Invalid ttl value", key=key)
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise CacheSerializationException("Invalid tags value", key=key)

        try:
            return cls(
                data=record["data"],
                stored_at=stored_at,
                ttl=ttl,
                tags=frozenset(tags),
            )
        except ValueError as e:
            raise CacheSerializationException(str(e), key=key, original_error=e) from e

    def encode(self, key: Optional[str] = None) -> str:
        """Serialize entry to its JSON text form."""
        try:
            return json.dumps(self.to_record())
        except (TypeError, ValueError) as e:
            raise CacheSerializationException(
                "Failed to encode cache entry", key=key, original_error=e
            ) from e

    @classmethod
    def decode(cls, raw: str, key: Optional[str] = None) -> "CacheEntry":
        """Deserialize entry from its JSON text form."""
        try:
            record = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise CacheSerializationException(
                "Failed to decode cache entry", key=key, original_error=e
            ) from e
        return cls.from_record(record, key=key)
