"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated defaults for backoff schedules and logging,
loaded from environment variables or a .env file.

Example:
    >>> from ctxretry.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.backoff.min_delay
    1.0
    >>> settings.logging.level
    'INFO'

    # Or with environment variables:
    # CTXRETRY_BACKOFF_STRATEGY=constant
    # CTXRETRY_BACKOFF_MAX_TIMES=5
    # CTXRETRY_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Literal

from pydantic import (
    Field,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveFloat,
    ValidationInfo,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from ctxretry.runtime.retry.backoff import BackoffBuilder


class BackoffSettings(BaseSettings):
    """Default backoff schedule used when no builder is passed explicitly."""

    model_config = SettingsConfigDict(
        env_prefix="CTXRETRY_BACKOFF_",
        extra="ignore",
    )

    strategy: Literal["exponential", "constant", "fibonacci"] = "exponential"
    min_delay: NonNegativeFloat = Field(default=1.0, description="First delay in seconds")
    max_delay: PositiveFloat | None = Field(default=60.0, description="Delay cap in seconds (None = uncapped)")
    factor: float = Field(default=2.0, ge=1.0, description="Exponential growth factor")
    max_times: NonNegativeInt | None = Field(default=3, description="Retry budget (None = unlimited)")
    jitter: bool = False
    total_delay: PositiveFloat | None = Field(default=None, description="Cumulative delay budget in seconds")

    @field_validator("strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check_bounds(self) -> BackoffSettings:
        if self.max_delay is not None and self.max_delay < self.min_delay:
            raise ValueError(f"max_delay ({self.max_delay}) must be >= min_delay ({self.min_delay})")
        return self

    def builder(self) -> BackoffBuilder:
        """Build the backoff builder this configuration describes."""
        from ctxretry.runtime.retry.backoff import ConstantBuilder, ExponentialBuilder, FibonacciBuilder

        match self.strategy:
            case "constant":
                return ConstantBuilder(delay=self.min_delay, max_times=self.max_times, jitter=self.jitter)
            case "fibonacci":
                return FibonacciBuilder(min_delay=self.min_delay, max_delay=self.max_delay,
                                        max_times=self.max_times, jitter=self.jitter)
            case _:
                return ExponentialBuilder(min_delay=self.min_delay, max_delay=self.max_delay, factor=self.factor,
                                          max_times=self.max_times, jitter=self.jitter,
                                          total_delay=self.total_delay)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CTXRETRY_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"
    colors: bool | None = None

    @field_validator("level", "format", mode="before")
    @classmethod
    def _normalize_case(cls, v: str, info: ValidationInfo) -> str:
        if not isinstance(v, str):
            return v
        return v.upper() if info.field_name == "level" else v.lower()


class CtxRetrySettings(BaseSettings):
    """Root settings for ctxretry.

    Loads configuration from environment variables with CTXRETRY_ prefix.

    Example environment variables:
        CTXRETRY_DEBUG=true
        CTXRETRY_BACKOFF_MIN_DELAY=0.5
        CTXRETRY_LOG_FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="CTXRETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Enable debug mode")

    backoff: BackoffSettings = Field(default_factory=BackoffSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @computed_field
    @property
    def effective_log_level(self) -> str:
        """Debug mode forces DEBUG logging."""
        return "DEBUG" if self.debug else self.logging.level


@lru_cache(maxsize=1)
def get_settings() -> CtxRetrySettings:
    """Get the global settings instance (cached)."""
    return CtxRetrySettings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() rereads the environment."""
    get_settings.cache_clear()
