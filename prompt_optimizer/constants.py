"""
Prompt Optimizer Global Constants

Centralized location for system-wide constants used across the application.
"""

import time


def current_time_ms() -> int:
    """Get current wall-clock time in epoch milliseconds.

    Cache entries persist this value, so it must survive process restarts;
    a monotonic clock would not.
    """
    return time.time_ns() // 1_000_000


# Cache Constants
DEFAULT_CACHE_NAMESPACE = "prompt-optimizer:cache"
DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0

# Application Constants
APP_NAME = "Prompt Optimizer"
APP_VERSION = "1.0.0"
