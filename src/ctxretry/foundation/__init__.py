"""Foundation - building blocks shared by the runtime.

Contains: error handling (Result, faults) and configuration.
"""

from __future__ import annotations

__all__ = [
    # Errors
    "Result", "Ok", "Err", "try_fn", "try_async",
    "FaultCode", "RetryFault", "RetryFaultError", "ConfigurationError", "InvariantError",
    # Config
    "CtxRetrySettings", "BackoffSettings", "LoggingSettings", "get_settings", "clear_settings_cache",
]


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    if name in ("Result", "Ok", "Err", "try_fn", "try_async",
                "FaultCode", "RetryFault", "RetryFaultError", "ConfigurationError", "InvariantError"):
        from . import errors
        return getattr(errors, name)

    if name in ("CtxRetrySettings", "BackoffSettings", "LoggingSettings", "get_settings", "clear_settings_cache"):
        from . import config
        return getattr(config, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
