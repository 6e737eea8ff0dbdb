"""
Cache Exceptions

Exception taxonomy for cache and storage operations.
Storage and serialization faults are absorbed by the cache manager;
configuration errors are raised to the caller.
"""

from typing import Optional, Any, Dict


class CacheException(Exception):
    """Base exception for cache-related errors.

    Carries a stable error code and structured details for logging.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class StorageException(CacheException):
    """Raised when a durable storage substrate cannot serve a request."""


class StorageUnavailableException(StorageException):
    """Raised when the storage substrate cannot be reached or fails."""

    def __init__(
        self,
        message: str = "Cache storage unavailable",
        operation: Optional[str] = None,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if key:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message, error_code="STORAGE_UNAVAILABLE", details=details
        )
        if original_error:
            self.__cause__ = original_error


class StorageQuotaExceededException(StorageException):
    """Raised when a write would exceed the substrate's capacity."""

    def __init__(
        self,
        message: str = "Cache storage quota exceeded",
        key: Optional[str] = None,
        quota_bytes: Optional[int] = None,
        required_bytes: Optional[int] = None,
    ):
        details = {}
        if key:
            details["key"] = key
        if quota_bytes is not None:
            details["quota_bytes"] = quota_bytes
        if required_bytes is not None:
            details["required_bytes"] = required_bytes

        super().__init__(
            message=message, error_code="STORAGE_QUOTA_EXCEEDED", details=details
        )


class StorageCircuitOpenException(StorageException):
    """Raised when the storage circuit breaker is open."""

    def __init__(
        self, message: str = "Storage circuit breaker is open - tier unavailable"
    ):
        super().__init__(
            message=message,
            error_code="STORAGE_CIRCUIT_OPEN",
            details={"service_status": "unavailable"},
        )


class CacheSerializationException(CacheException):
    """Raised when a persisted cache record cannot be encoded or decoded."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if key:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message, error_code="CACHE_SERIALIZATION_ERROR", details=details
        )
        if original_error:
            self.__cause__ = original_error


class CacheConfigurationException(CacheException):
    """Raised when the cache is wired or declared inconsistently."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = str(config_value)

        super().__init__(
            message=message, error_code="CACHE_CONFIGURATION_ERROR", details=details
        )
