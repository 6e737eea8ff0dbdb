"""
Cache Service Module

Tiered cache manager, expiry sweeper, key derivation and the
read-through / write-invalidate decorators.
"""

from .cache_manager import CacheManager
from .decorators import CacheOptions, cache, cache_evict
from .factory import build_cache_manager
from .keys import derive_key
from .sweeper import ExpirySweeper

__all__ = [
    "CacheManager",
    "CacheOptions",
    "cache",
    "cache_evict",
    "build_cache_manager",
    "derive_key",
    "ExpirySweeper",
]
