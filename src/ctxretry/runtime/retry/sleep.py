"""Suspension mechanisms used between retry attempts.

A Sleeper turns a delay in seconds into an awaitable that completes no earlier
than that delay. The awaitable must be safe to abandon: cancelling or closing
it before completion frees its timer and has no other effect.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

SleepFn = Callable[[float], Awaitable[None]]


@runtime_checkable
class Sleeper(Protocol):
    """Capability that produces a cancel-safe delay awaitable."""

    def sleep(self, delay: float) -> Awaitable[None]: ...


@dataclass(frozen=True, slots=True)
class AsyncioSleeper:
    """Sleeps on the running asyncio event loop."""

    def sleep(self, delay: float) -> Awaitable[None]:
        return asyncio.sleep(delay)


DefaultSleeper = AsyncioSleeper


@dataclass(frozen=True, slots=True)
class FunctionSleeper:
    """Adapt a plain `async def sleep(delay)` callable to the Sleeper protocol.

    Example:
        >>> async def fast_sleep(delay: float) -> None:
        ...     await asyncio.sleep(delay / 10)
        >>> sleeper = FunctionSleeper(fast_sleep)
    """

    fn: SleepFn

    def sleep(self, delay: float) -> Awaitable[None]:
        return self.fn(delay)


def as_sleeper(sleeper: Sleeper | SleepFn) -> Sleeper:
    """Accept either a Sleeper or a bare sleep callable."""
    if isinstance(sleeper, Sleeper):
        return sleeper
    if callable(sleeper):
        return FunctionSleeper(sleeper)
    raise TypeError(f"Expected a Sleeper or a callable, got {type(sleeper).__name__}")
