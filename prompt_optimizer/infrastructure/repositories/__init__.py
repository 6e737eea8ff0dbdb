"""
Cache Repositories

TierBackend implementations for the memory and durable tiers.
"""

from .cache_repository import MemoryTierBackend, StorageTierBackend

__all__ = ["MemoryTierBackend", "StorageTierBackend"]
