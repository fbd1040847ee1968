"""Configuration management using pydantic-settings."""

from .settings import (
    BackoffSettings,
    CtxRetrySettings,
    LoggingSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "BackoffSettings",
    "CtxRetrySettings",
    "LoggingSettings",
    "clear_settings_cache",
    "get_settings",
]
