"""
Prompt Optimizer Cache Monitoring Module

Prometheus counters for cache hits, misses, errors and evictions.
"""

from .cache_metrics import (
    CACHE_EVICTIONS,
    CACHE_OPERATIONS,
    CACHE_REGISTRY,
    export_metrics,
    record_evictions,
    record_operation,
)

__all__ = [
    "CACHE_EVICTIONS",
    "CACHE_OPERATIONS",
    "CACHE_REGISTRY",
    "export_metrics",
    "record_evictions",
    "record_operation",
]
