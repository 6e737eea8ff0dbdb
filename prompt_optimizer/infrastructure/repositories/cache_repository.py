"""
Cache Tier Repositories

Infrastructure implementations of the TierBackend interface.
The memory tier keeps live CacheEntry objects and a materialized tag
index; durable tiers serialize entries into a StorageArea.
"""

import logging
from typing import Dict, List, Optional

from ...domain.cache.entities import CacheEntry
from ...domain.cache.exceptions import CacheSerializationException
from ...domain.cache.repository_interfaces import StorageArea, TierBackend
from ...domain.cache.tag_index import TagIndex

logger = logging.getLogger(__name__)


class MemoryTierBackend(TierBackend):
    """In-process tier backend with a reverse tag index."""

    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self.tag_index = TagIndex()

    async def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def set(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry
        self.tag_index.add(key, entry.tags)

    async def delete(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        self.tag_index.remove(key)
        return entry is not None

    async def clear(self) -> None:
        self._entries.clear()
        self.tag_index.clear()

    async def keys(self) -> List[str]:
        return list(self._entries)

    async def keys_for_tag(self, tag: str, now: Optional[int] = None) -> List[str]:
        keys = self.tag_index.keys_for(tag)
        if now is None:
            return sorted(keys)
        return sorted(k for k in keys if not self._entries[k].is_expired(now))

    async def size(self) -> int:
        return len(self._entries)


class StorageTierBackend(TierBackend):
    """
    Durable tier backend over a StorageArea.

    Each key holds one JSON record ``{data, storedAt, ttl, tags}``. Tag
    lookups scan and decode every record, because other processes may
    write to the same substrate. Records that fail to decode are skipped
    by scans and reported by ``get``.
    """

    def __init__(self, storage: StorageArea):
        self.storage = storage

    async def get(self, key: str) -> Optional[CacheEntry]:
        raw = await self.storage.get_item(key)
        if raw is None:
            return None
        return CacheEntry.decode(raw, key=key)

    async def set(self, key: str, entry: CacheEntry) -> None:
        await self.storage.set_item(key, entry.encode(key=key))

    async def delete(self, key: str) -> bool:
        existed = await self.storage.get_item(key) is not None
        await self.storage.remove_item(key)
        return existed

    async def clear(self) -> None:
        await self.storage.clear()

    async def keys(self) -> List[str]:
        return await self.storage.keys()

    async def keys_for_tag(self, tag: str, now: Optional[int] = None) -> List[str]:
        matched = []
        for key in await self.storage.keys():
            try:
                entry = await self.get(key)
            except CacheSerializationException:
                logger.debug(f"Skipping undecodable cache record {key} in tag scan")
                continue
            if entry is None or tag not in entry.tags:
                continue
            if now is not None and entry.is_expired(now):
                continue
            matched.append(key)
        return matched

    async def size(self) -> int:
        return await self.storage.length()

    async def close(self) -> None:
        await self.storage.close()
