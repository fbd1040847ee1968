"""Ready-made notify callbacks for retry sessions.

Each factory returns a `(error, delay) -> None` callable suitable for
`RetryWithContext.notify()` / `Retry.notify()`.

Example:
    >>> session = (
    ...     retry_with_context(fetch, builder)
    ...     .context(conn)
    ...     .notify(chain_notify(log_notify(), traced_notify()))
    ... )
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from .logging import BoundLogger, get_logger

NotifyFn = Callable[[Any, float], None]


def log_notify(log: BoundLogger | None = None, *, level: str = "warning", event: str = "retrying") -> NotifyFn:
    """Log every scheduled retry with the error and the delay.

    Args:
        log: Logger to use (default: get_logger("ctxretry.retry"))
        level: Log level name for the record
        event: Event name of the record
    """
    level_no = logging.getLevelName(level.upper())
    if not isinstance(level_no, int):
        raise ValueError(f"Unknown level: {level}")

    def notify(error: Any, delay: float) -> None:
        (log or get_logger("ctxretry.retry")).log(
            level_no, event, error_type=type(error).__name__, error=str(error), delay=round(delay, 6),
        )

    return notify


def traced_notify(event: str = "retry") -> NotifyFn:
    """Record every scheduled retry as an event on the current OpenTelemetry span.

    Requires: pip install ctxretry[otel]
    """
    try:
        from opentelemetry import trace
    except ImportError as e:
        raise ImportError("traced_notify requires: pip install ctxretry[otel]") from e

    def notify(error: Any, delay: float) -> None:
        trace.get_current_span().add_event(event, {
            "retry.delay_seconds": delay,
            "exception.type": type(error).__name__,
            "exception.message": str(error),
        })

    return notify


def chain_notify(*callbacks: NotifyFn) -> NotifyFn:
    """Fan one notification out to several callbacks, in order."""
    def notify(error: Any, delay: float) -> None:
        for cb in callbacks:
            cb(error, delay)

    return notify
