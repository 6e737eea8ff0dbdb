"""
Cache Metrics

Prometheus counters for cache traffic, kept on a dedicated registry so
they can be exported next to, or independently of, the default one.
"""

from prometheus_client import CollectorRegistry, Counter, generate_latest
import structlog

logger = structlog.get_logger(__name__)

CACHE_REGISTRY = CollectorRegistry(auto_describe=True)

CACHE_OPERATIONS = Counter(
    "prompt_cache_operations_total",
    "Cache operations by tier, operation and result",
    ["tier", "operation", "result"],
    registry=CACHE_REGISTRY,
)

CACHE_EVICTIONS = Counter(
    "prompt_cache_evictions_total",
    "Entries removed from the cache by reason",
    ["tier", "reason"],
    registry=CACHE_REGISTRY,
)


def record_operation(tier: str, operation: str, result: str) -> None:
    """Count one cache operation outcome (hit, miss, stored, error, ...)."""
    CACHE_OPERATIONS.labels(tier=tier, operation=operation, result=result).inc()


def record_evictions(tier: str, reason: str, count: int = 1) -> None:
    """Count entries removed by expiry, tag invalidation or clearing."""
    if count <= 0:
        return
    CACHE_EVICTIONS.labels(tier=tier, reason=reason).inc(count)


def export_metrics() -> bytes:
    """Render the cache registry in Prometheus text format."""
    try:
        return generate_latest(CACHE_REGISTRY)
    except Exception as e:
        logger.error("Failed to render cache metrics", error=str(e))
        raise
