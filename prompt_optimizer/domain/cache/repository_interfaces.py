"""
Cache Repository Interfaces

Abstract contracts for cache persistence implementations.
A StorageArea is the raw string key/value substrate used by durable tiers;
a TierBackend stores CacheEntry objects for one cache tier.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .entities import CacheEntry


class StorageArea(ABC):
    """
    Enumerable string key/value store.

    Mirrors the browser Web Storage shape so durable tiers can be backed
    by anything that can hold strings. Implementations raise
    StorageException subclasses on failure.
    """

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """Return stored string or None."""
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store string under key, replacing any previous value."""
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Remove key. No-op when absent."""
        pass

    @abstractmethod
    async def key(self, index: int) -> Optional[str]:
        """Return the key at position ``index`` or None when out of range."""
        pass

    @abstractmethod
    async def length(self) -> int:
        """Return number of stored keys."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key."""
        pass

    async def keys(self) -> List[str]:
        """Snapshot every stored key by walking ``key(index)``."""
        result = []
        for index in range(await self.length()):
            item_key = await self.key(index)
            if item_key is not None:
                result.append(item_key)
        return result

    async def close(self) -> None:
        """Release held resources."""
        return None


class TierBackend(ABC):
    """
    Storage for the entries of a single cache tier.

    Backends do not apply expiry rules; the cache manager does.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return stored entry or None."""
        pass

    @abstractmethod
    async def set(self, key: str, entry: CacheEntry) -> None:
        """Store entry, replacing any previous entry for key."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete entry. Returns True if something was removed."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove all entries from the tier."""
        pass

    @abstractmethod
    async def keys(self) -> List[str]:
        """Enumerate stored keys."""
        pass

    @abstractmethod
    async def keys_for_tag(self, tag: str, now: Optional[int] = None) -> List[str]:
        """Return keys whose entry carries ``tag``.

        When ``now`` is given, entries already expired at that time are left out.
        """
        pass

    @abstractmethod
    async def size(self) -> int:
        """Return number of stored entries."""
        pass

    async def close(self) -> None:
        """Release held resources."""
        return None
