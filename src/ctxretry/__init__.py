"""ctxretry - Retry async operations that carry state across attempts.

The operation receives an owned context, returns it together with a Result,
and the driver threads it into the next attempt. Backoff schedule, sleeper,
retry predicate and notify callback are all pluggable.

Quick Start:
    >>> from ctxretry import ExponentialBuilder, Err, Ok, retry_with_context
    >>>
    >>> async def send(conn):
    ...     try:
    ...         return conn, Ok(await conn.send(b"ping"))
    ...     except ConnectionError as e:
    ...         return conn, Err(e)
    >>>
    >>> conn, result = await (
    ...     retry_with_context(send, ExponentialBuilder(min_delay=0.1, max_times=5))
    ...     .context(conn)
    ...     .when(lambda e: isinstance(e, ConnectionResetError))
    ...     .notify(log_notify())
    ... )

Without a context:
    >>> result = await retry(fetch, ConstantBuilder(delay=0.5))

Configuration:
    >>> # CTXRETRY_BACKOFF_STRATEGY=fibonacci CTXRETRY_BACKOFF_MAX_TIMES=5
    >>> conn, result = await retry_with_context(send).context(conn)  # builder from settings
"""

from __future__ import annotations

__version__ = "0.1.0"

# Errors
from .foundation.errors import (
    ConfigurationError,
    Err,
    FaultCode,
    InvariantError,
    Ok,
    Result,
    RetryFault,
    RetryFaultError,
    try_async,
    try_fn,
)

# Config
from .foundation.config import (
    BackoffSettings,
    CtxRetrySettings,
    LoggingSettings,
    clear_settings_cache,
    get_settings,
)

# Retry
from .runtime.retry import (
    AsyncioSleeper,
    Backoff,
    BackoffBuilder,
    ConstantBuilder,
    DefaultSleeper,
    ExponentialBuilder,
    FibonacciBuilder,
    FunctionSleeper,
    Retry,
    RetryWithContext,
    ScheduleBuilder,
    Sleeper,
    as_sleeper,
    default_builder,
    retry,
    retry_with_context,
    retrying,
)

# Observability
from .runtime.observability import (
    chain_notify,
    configure_logging,
    get_logger,
    log_notify,
    traced_notify,
)

__all__ = [
    # Version
    "__version__",
    # Errors
    "Result",
    "Ok",
    "Err",
    "try_fn",
    "try_async",
    "FaultCode",
    "RetryFault",
    "RetryFaultError",
    "ConfigurationError",
    "InvariantError",
    # Config
    "CtxRetrySettings",
    "BackoffSettings",
    "LoggingSettings",
    "get_settings",
    "clear_settings_cache",
    # Retry
    "RetryWithContext",
    "retry_with_context",
    "Retry",
    "retry",
    "retrying",
    "Backoff",
    "BackoffBuilder",
    "ConstantBuilder",
    "ExponentialBuilder",
    "FibonacciBuilder",
    "ScheduleBuilder",
    "default_builder",
    "Sleeper",
    "AsyncioSleeper",
    "DefaultSleeper",
    "FunctionSleeper",
    "as_sleeper",
    # Observability
    "configure_logging",
    "get_logger",
    "log_notify",
    "traced_notify",
    "chain_notify",
]
