"""Backoff schedules for retry sessions.

A BackoffBuilder is an immutable description of a schedule; build() produces
a fresh, stateful Backoff for one retry session. Each call to Backoff.next()
returns the delay in seconds before the next attempt, or None once the
schedule is exhausted. Exhaustion is permanent.

Provided schedules:
- ConstantBuilder: Fixed delay
- ExponentialBuilder: Exponential growth with cap and optional total budget
- FibonacciBuilder: Fibonacci growth with cap
- ScheduleBuilder: Replays an explicit sequence of delays

Jitter, when enabled, adds a uniform random fraction of the current delay
(so a jittered delay lies in [d, 2d)).
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field, replace
from typing import Protocol, Self, runtime_checkable

from ctxretry.foundation.config import get_settings


@runtime_checkable
class Backoff(Protocol):
    """Stateful generator of optional retry delays for one session."""

    def next(self) -> float | None:
        """Delay in seconds before the next attempt, or None when exhausted."""
        ...


@runtime_checkable
class BackoffBuilder(Protocol):
    """Factory producing a fresh Backoff per retry session."""

    def build(self) -> Backoff: ...


# ─────────────────────────────────────────────────────────────────────────────
# Stateful Backoff Instances
# ─────────────────────────────────────────────────────────────────────────────


class _IterableBackoff(ABC):
    """Iterator protocol over next(): iteration stops when the schedule is exhausted."""

    __slots__ = ()

    @abstractmethod
    def next(self) -> float | None:
        """Delay in seconds before the next attempt, or None when exhausted."""

    def __iter__(self) -> Iterator[float]:
        return self  # type: ignore[return-value]

    def __next__(self) -> float:
        if (delay := self.next()) is None:
            raise StopIteration
        return delay


def _jittered(delay: float, rng: random.Random | None) -> float:
    return delay + delay * rng.random() if rng else delay


def _out_of_attempts(attempts: int, max_times: int | None) -> bool:
    return max_times is not None and attempts >= max_times


@dataclass(slots=True)
class ConstantBackoff(_IterableBackoff):
    delay: float
    max_times: int | None
    rng: random.Random | None = field(default=None, repr=False)
    attempts: int = 0

    def next(self) -> float | None:
        if _out_of_attempts(self.attempts, self.max_times):
            return None
        self.attempts += 1
        return _jittered(self.delay, self.rng)


@dataclass(slots=True)
class ExponentialBackoff(_IterableBackoff):
    """Delay = min(min_delay * factor ** n, max_delay), bounded by max_times and total_delay."""

    min_delay: float
    max_delay: float | None
    factor: float
    max_times: int | None
    total_delay: float | None
    rng: random.Random | None = field(default=None, repr=False)
    attempts: int = 0
    current: float | None = None
    cumulative: float = 0.0
    exhausted: bool = False

    def next(self) -> float | None:
        if self.exhausted or _out_of_attempts(self.attempts, self.max_times):
            self.exhausted = True
            return None
        cur = self.min_delay if self.current is None else self.current * self.factor
        if self.max_delay is not None:
            cur = min(cur, self.max_delay)
        delay = _jittered(cur, self.rng)
        if self.total_delay is not None and self.cumulative + delay > self.total_delay:
            self.exhausted = True
            return None
        self.current, self.attempts, self.cumulative = cur, self.attempts + 1, self.cumulative + delay
        return delay


@dataclass(slots=True)
class FibonacciBackoff(_IterableBackoff):
    """Delays follow min_delay * (1, 1, 2, 3, 5, ...), capped at max_delay."""

    min_delay: float
    max_delay: float | None
    max_times: int | None
    rng: random.Random | None = field(default=None, repr=False)
    attempts: int = 0
    previous: float = 0.0
    current: float | None = None

    def next(self) -> float | None:
        if _out_of_attempts(self.attempts, self.max_times):
            return None
        if self.current is None:
            cur = self.min_delay
        else:
            cur = self.previous + self.current
            self.previous = self.current
        if self.max_delay is not None:
            cur = min(cur, self.max_delay)
        self.current = cur
        self.attempts += 1
        return _jittered(cur, self.rng)


@dataclass(slots=True)
class ScheduleBackoff(_IterableBackoff):
    delays: Iterator[float]
    exhausted: bool = False

    def next(self) -> float | None:
        if self.exhausted:
            return None
        if (delay := next(self.delays, None)) is None:
            self.exhausted = True
        return delay


# ─────────────────────────────────────────────────────────────────────────────
# Builders
# ─────────────────────────────────────────────────────────────────────────────


def _check_delay(name: str, value: float | None) -> None:
    if value is not None and value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")


class _BuilderOps:
    """Fluent setters shared by builders with max_times and jitter fields."""

    __slots__ = ()

    max_times: int | None
    jitter: bool
    jitter_seed: int | None

    def with_max_times(self, max_times: int) -> Self:
        """Stop after `max_times` retries."""
        if max_times < 0:
            raise ValueError(f"max_times must be >= 0, got {max_times}")
        return replace(self, max_times=max_times)  # type: ignore[type-var]

    def without_max_times(self) -> Self:
        """Retry without an attempt limit."""
        return replace(self, max_times=None)  # type: ignore[type-var]

    def with_jitter(self) -> Self:
        return replace(self, jitter=True)  # type: ignore[type-var]

    def with_jitter_seed(self, seed: int) -> Self:
        """Make jitter reproducible across sessions."""
        return replace(self, jitter_seed=seed)  # type: ignore[type-var]

    def _rng(self) -> random.Random | None:
        return random.Random(self.jitter_seed) if self.jitter else None


@dataclass(frozen=True, slots=True)
class ConstantBuilder(_BuilderOps):
    """Fixed delay between retries.

    Attributes:
        delay: Delay in seconds (default: 1.0)
        max_times: Retry budget, None for unlimited (default: 3)
        jitter: Randomize delays (default: False)
    """

    delay: float = 1.0
    max_times: int | None = 3
    jitter: bool = False
    jitter_seed: int | None = None

    def __post_init__(self) -> None:
        _check_delay("delay", self.delay)

    def with_delay(self, delay: float) -> ConstantBuilder:
        return replace(self, delay=delay)

    def build(self) -> ConstantBackoff:
        return ConstantBackoff(self.delay, self.max_times, self._rng())


@dataclass(frozen=True, slots=True)
class ExponentialBuilder(_BuilderOps):
    """Exponential backoff with cap.

    Delay = min(min_delay * (factor ^ attempt), max_delay)

    Attributes:
        min_delay: First delay in seconds (default: 1.0)
        max_delay: Delay cap in seconds, None for uncapped (default: 60.0)
        factor: Growth factor (default: 2.0)
        max_times: Retry budget, None for unlimited (default: 3)
        total_delay: Budget for the sum of all delays, None for unbounded
        jitter: Randomize delays (default: False)

    Example:
        >>> backoff = ExponentialBuilder(min_delay=0.1).with_max_times(4).build()
        >>> list(backoff)
        [0.1, 0.2, 0.4, 0.8]
    """

    min_delay: float = 1.0
    max_delay: float | None = 60.0
    factor: float = 2.0
    max_times: int | None = 3
    total_delay: float | None = None
    jitter: bool = False
    jitter_seed: int | None = None

    def __post_init__(self) -> None:
        _check_delay("min_delay", self.min_delay)
        _check_delay("max_delay", self.max_delay)
        _check_delay("total_delay", self.total_delay)
        if self.factor < 1.0:
            raise ValueError(f"factor must be >= 1.0, got {self.factor}")

    def with_min_delay(self, min_delay: float) -> ExponentialBuilder:
        return replace(self, min_delay=min_delay)

    def with_max_delay(self, max_delay: float) -> ExponentialBuilder:
        return replace(self, max_delay=max_delay)

    def without_max_delay(self) -> ExponentialBuilder:
        return replace(self, max_delay=None)

    def with_factor(self, factor: float) -> ExponentialBuilder:
        return replace(self, factor=factor)

    def with_total_delay(self, total_delay: float | None) -> ExponentialBuilder:
        return replace(self, total_delay=total_delay)

    def build(self) -> ExponentialBackoff:
        return ExponentialBackoff(self.min_delay, self.max_delay, self.factor, self.max_times,
                                  self.total_delay, self._rng())


@dataclass(frozen=True, slots=True)
class FibonacciBuilder(_BuilderOps):
    """Fibonacci backoff with cap.

    Attributes:
        min_delay: First delay in seconds (default: 1.0)
        max_delay: Delay cap in seconds, None for uncapped (default: 60.0)
        max_times: Retry budget, None for unlimited (default: 3)
        jitter: Randomize delays (default: False)
    """

    min_delay: float = 1.0
    max_delay: float | None = 60.0
    max_times: int | None = 3
    jitter: bool = False
    jitter_seed: int | None = None

    def __post_init__(self) -> None:
        _check_delay("min_delay", self.min_delay)
        _check_delay("max_delay", self.max_delay)

    def with_min_delay(self, min_delay: float) -> FibonacciBuilder:
        return replace(self, min_delay=min_delay)

    def with_max_delay(self, max_delay: float) -> FibonacciBuilder:
        return replace(self, max_delay=max_delay)

    def without_max_delay(self) -> FibonacciBuilder:
        return replace(self, max_delay=None)

    def build(self) -> FibonacciBackoff:
        return FibonacciBackoff(self.min_delay, self.max_delay, self.max_times, self._rng())


@dataclass(frozen=True, slots=True)
class ScheduleBuilder:
    """Replay an explicit, finite sequence of delays, then stop.

    Example:
        >>> list(ScheduleBuilder((0.001, 0.002)).build())
        [0.001, 0.002]
    """

    delays: Sequence[float] = ()

    def __post_init__(self) -> None:
        for d in self.delays:
            _check_delay("delay", d)
        object.__setattr__(self, "delays", tuple(self.delays))

    def build(self) -> ScheduleBackoff:
        return ScheduleBackoff(iter(self.delays))


def default_builder() -> BackoffBuilder:
    """Backoff builder described by the CTXRETRY_BACKOFF_* settings."""
    return get_settings().backoff.builder()
