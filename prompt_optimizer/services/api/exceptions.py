"""
Prompt API Exceptions
"""

from typing import Any, Dict, Optional


class ApiException(Exception):
    """Raised when the prompt API call fails.

    Carries the HTTP status code (None for network failures), a stable
    error code and structured details from the response body.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        error_code: str = "UNKNOWN_ERROR",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        self.retryable = retryable
        super().__init__(self.message)

    def __repr__(self) -> str:
        return (
            f"ApiException(error_code={self.error_code!r}, "
            f"status_code={self.status_code!r}, message={self.message!r})"
        )
