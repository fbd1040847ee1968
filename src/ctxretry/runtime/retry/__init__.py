"""Retry sessions with pluggable backoff, sleeper, predicate and notifier.

Example:
    >>> from ctxretry.runtime.retry import ExponentialBuilder, retry_with_context
    >>>
    >>> async def read_page(cursor: Cursor) -> tuple[Cursor, Result[list[Row], DbError]]:
    ...     rows = await try_async(cursor.fetch_page)
    ...     return cursor, rows
    >>>
    >>> cursor, rows = await (
    ...     retry_with_context(read_page, ExponentialBuilder(min_delay=0.2, max_times=5))
    ...     .context(cursor)
    ...     .when(lambda e: e.transient)
    ... )
"""

from .backoff import (
    Backoff,
    BackoffBuilder,
    ConstantBackoff,
    ConstantBuilder,
    ExponentialBackoff,
    ExponentialBuilder,
    FibonacciBackoff,
    FibonacciBuilder,
    ScheduleBackoff,
    ScheduleBuilder,
    default_builder,
)
from .driver import (
    Idle,
    Polling,
    RetryWithContext,
    Sleeping,
    retry_with_context,
)
from .simple import Retry, retry, retrying
from .sleep import (
    AsyncioSleeper,
    DefaultSleeper,
    FunctionSleeper,
    Sleeper,
    as_sleeper,
)

__all__ = [
    # Backoff
    "Backoff",
    "BackoffBuilder",
    "ConstantBackoff",
    "ConstantBuilder",
    "ExponentialBackoff",
    "ExponentialBuilder",
    "FibonacciBackoff",
    "FibonacciBuilder",
    "ScheduleBackoff",
    "ScheduleBuilder",
    "default_builder",
    # Sleepers
    "Sleeper",
    "AsyncioSleeper",
    "DefaultSleeper",
    "FunctionSleeper",
    "as_sleeper",
    # Driver
    "RetryWithContext",
    "retry_with_context",
    "Idle",
    "Polling",
    "Sleeping",
    # Context-free
    "Retry",
    "retry",
    "retrying",
]
