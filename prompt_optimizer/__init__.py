"""
Prompt Optimizer client cache layer.

Tiered caching with TTLs, tag invalidation and read-through /
write-invalidate wrappers for the prompt API.
"""

from .constants import APP_VERSION

__version__ = APP_VERSION
