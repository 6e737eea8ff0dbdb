"""
Main pytest configuration for the cache layer tests.

Fixtures for clocks, tier backends and cache managers.
"""

import os

import pytest

# Set test environment variables before importing application modules
os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["CACHE_PERSISTENT_BACKEND"] = "memory"
os.environ["CACHE_SESSION_BACKEND"] = "memory"

from prompt_optimizer.domain.cache.value_objects import CacheTier  # noqa: E402
from prompt_optimizer.infrastructure.repositories.cache_repository import (  # noqa: E402
    MemoryTierBackend,
    StorageTierBackend,
)
from prompt_optimizer.infrastructure.storage import InMemoryStorageArea  # noqa: E402
from prompt_optimizer.services.cache.cache_manager import CacheManager  # noqa: E402


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now += milliseconds


@pytest.fixture
def clock():
    """Provide a fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def persistent_area():
    return InMemoryStorageArea()


@pytest.fixture
def session_area():
    return InMemoryStorageArea()


@pytest.fixture
def cache_manager(clock, persistent_area, session_area):
    """Cache manager with all three tiers and a fake clock."""
    return CacheManager(
        backends={
            CacheTier.MEMORY: MemoryTierBackend(),
            CacheTier.PERSISTENT: StorageTierBackend(persistent_area),
            CacheTier.SESSION: StorageTierBackend(session_area),
        },
        clock=clock,
    )


@pytest.fixture
def memory_only_manager(clock):
    """Cache manager with only the memory tier configured."""
    return CacheManager(clock=clock)
