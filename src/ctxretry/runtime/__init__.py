"""Runtime - retry sessions and their observability.

Contains: retry (driver, backoff, sleepers), observability (logging, notifiers).

The context-free `retry()` function is exported from the top-level `ctxretry`
package only; here `ctxretry.runtime.retry` always names the subpackage.
"""

from __future__ import annotations

__all__ = [
    # Retry
    "RetryWithContext", "retry_with_context", "Retry", "retrying",
    "Backoff", "BackoffBuilder", "ConstantBuilder", "ExponentialBuilder", "FibonacciBuilder",
    "ScheduleBuilder", "default_builder",
    "Sleeper", "AsyncioSleeper", "DefaultSleeper", "FunctionSleeper", "as_sleeper",
    # Observability
    "configure_logging", "get_logger", "log_notify", "traced_notify", "chain_notify",
]


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    if name in ("RetryWithContext", "retry_with_context", "Retry", "retrying",
                "Backoff", "BackoffBuilder", "ConstantBuilder", "ExponentialBuilder", "FibonacciBuilder",
                "ScheduleBuilder", "default_builder",
                "Sleeper", "AsyncioSleeper", "DefaultSleeper", "FunctionSleeper", "as_sleeper"):
        from . import retry
        return getattr(retry, name)

    if name in ("configure_logging", "get_logger", "log_notify", "traced_notify", "chain_notify"):
        from . import observability
        return getattr(observability, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
