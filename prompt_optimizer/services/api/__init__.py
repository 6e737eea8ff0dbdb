"""
Prompt API Client Module

Async HTTP client whose reads and writes are wired to the cache layer.
"""

from .exceptions import ApiException
from .prompt_client import PromptApiClient
from .schemas import (
    CreatePromptRequest,
    OptimizationRequest,
    PromptQueryParams,
    UpdatePromptRequest,
)

__all__ = [
    "ApiException",
    "PromptApiClient",
    "CreatePromptRequest",
    "OptimizationRequest",
    "PromptQueryParams",
    "UpdatePromptRequest",
]
