"""
Prompt Optimizer Cache Configuration

Configuration management with environment variable support.
Implements secure defaults and validation for all cache settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional
from functools import lru_cache
from dotenv import load_dotenv

from ..constants import DEFAULT_CACHE_NAMESPACE, DEFAULT_SWEEP_INTERVAL_SECONDS

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation and secure defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # Cache configuration
    CACHE_DEFAULT_TTL_MS: int = Field(
        default=300000,
        ge=1,
        le=86400 * 365 * 1000,
        description="Default entry TTL in milliseconds",
    )
    CACHE_SWEEP_INTERVAL_SECONDS: float = Field(
        default=DEFAULT_SWEEP_INTERVAL_SECONDS,
        gt=0,
        le=86400,
        description="Interval between expiry sweeps",
    )
    CACHE_NAMESPACE: str = Field(
        default=DEFAULT_CACHE_NAMESPACE,
        description="Key prefix for durable cache namespaces",
    )
    CACHE_PERSISTENT_BACKEND: str = Field(
        default="file", description="Substrate for the persistent tier"
    )
    CACHE_PERSISTENT_PATH: str = Field(
        default=".cache/prompt-optimizer.json",
        description="JSON document backing the file substrate",
    )
    CACHE_SESSION_BACKEND: str = Field(
        default="memory", description="Substrate for the session tier"
    )
    CACHE_SESSION_TTL_SECONDS: int = Field(
        default=86400,
        ge=60,
        le=86400 * 30,
        description="Lifetime of an idle session namespace",
    )

    # Redis configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379", description="Redis connection URL"
    )
    REDIS_MAX_CONNECTIONS: int = Field(
        default=10, ge=1, le=50, description="Redis connection pool size"
    )

    # Circuit breaker configuration
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = Field(
        default=5, ge=1, le=100, description="Failures before a tier is cut off"
    )
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT: int = Field(
        default=60, ge=1, le=3600, description="Seconds before a cut-off tier is retried"
    )
    STORAGE_OPERATION_TIMEOUT_SECONDS: float = Field(
        default=5.0, gt=0, le=60, description="Timeout for one storage operation"
    )

    # API client configuration
    API_BASE_URL: str = Field(
        default="http://localhost:8000/api", description="Prompt API base URL"
    )
    API_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0, le=300, description="HTTP request timeout"
    )
    API_MAX_RETRIES: int = Field(
        default=3, ge=0, le=10, description="Retries for transient HTTP failures"
    )
    API_RETRY_DELAY_SECONDS: float = Field(
        default=1.0, ge=0, le=60, description="Base delay for exponential backoff"
    )
    API_TOKEN: Optional[str] = Field(
        default=None, description="Bearer token for the prompt API"
    )

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "testing", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @field_validator("CACHE_PERSISTENT_BACKEND")
    @classmethod
    def validate_persistent_backend(cls, v):
        """Validate persistent tier substrate."""
        allowed = ["file", "redis", "memory"]
        if v.lower() not in allowed:
            raise ValueError(f"CACHE_PERSISTENT_BACKEND must be one of: {allowed}")
        return v.lower()

    @field_validator("CACHE_SESSION_BACKEND")
    @classmethod
    def validate_session_backend(cls, v):
        """Validate session tier substrate."""
        allowed = ["redis", "memory"]
        if v.lower() not in allowed:
            raise ValueError(f"CACHE_SESSION_BACKEND must be one of: {allowed}")
        return v.lower()

    @field_validator("REDIS_URL")
    @classmethod
    def validate_redis_url(cls, v):
        """Validate Redis URL format."""
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("REDIS_URL must be a redis:// URL")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def uses_redis(self) -> bool:
        return "redis" in (self.CACHE_PERSISTENT_BACKEND, self.CACHE_SESSION_BACKEND)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Create global settings instance
settings = get_settings()
