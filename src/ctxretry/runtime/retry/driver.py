"""Retry driver that threads an owned context through every attempt.

The operation takes the context, does its work and hands the context back with
a Result. Because the context comes back on every attempt, state such as a
connection or a cursor can be reused across retries instead of being captured
by a closure.

The driver is a three-state machine resumed by the event loop:
    Idle(ctx)            -> call fn(ctx), become Polling
    Polling(fut)         -> on Err that is retryable and not exhausted:
                            notify, become Sleeping; otherwise resolve
    Sleeping(ctx, sleep) -> once the sleep completes, become Idle

Example:
    >>> async def fetch(conn: Conn) -> tuple[Conn, Result[bytes, IOError]]:
    ...     return conn, await try_async(conn.read)
    >>>
    >>> conn, result = await (
    ...     retry_with_context(fetch, ExponentialBuilder(min_delay=0.1))
    ...     .context(conn)
    ...     .when(lambda e: isinstance(e, TimeoutError))
    ...     .notify(lambda e, d: print(f"retrying in {d:.1f}s: {e}"))
    ... )
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Generator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Final, Generic, Literal, TypeAlias, TypeVar

from ctxretry.foundation.errors import ConfigurationError, FaultCode, InvariantError, Result

from .backoff import Backoff, BackoffBuilder, default_builder
from .sleep import DefaultSleeper, Sleeper, SleepFn, as_sleeper

C = TypeVar("C")  # Context type
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type

Outcome: TypeAlias = "tuple[C, Result[T, E]]"
Operation: TypeAlias = "Callable[[C], Awaitable[tuple[C, Result[T, E]]]]"
Predicate: TypeAlias = "Callable[[E], bool]"
Notify: TypeAlias = "Callable[[E, float], None]"

logger = logging.getLogger("ctxretry.retry")


class _Missing(Enum):
    MISSING = "MISSING"


MISSING: Final = _Missing.MISSING


# ─────────────────────────────────────────────────────────────────────────────
# States
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class Idle(Generic[C]):
    """Holding the context, about to start the next attempt."""
    ctx: C | Literal[_Missing.MISSING] = MISSING


@dataclass(slots=True)
class Polling(Generic[C, T, E]):
    """Waiting on the in-flight attempt, which owns the context."""
    fut: Awaitable[tuple[C, Result[T, E]]]


@dataclass(slots=True)
class Sleeping(Generic[C]):
    """Holding the context while the backoff delay elapses."""
    ctx: C
    sleep: Awaitable[None]


State: TypeAlias = "Idle[C] | Polling[C, T, E] | Sleeping[C]"


def _always_retry(_: object) -> bool:
    return True


def _no_notify(_: object, __: float) -> None:
    return None


def _name_of(fn: object) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)


# ─────────────────────────────────────────────────────────────────────────────
# Driver
# ─────────────────────────────────────────────────────────────────────────────


class RetryWithContext(Generic[C, T, E]):
    """Awaitable retry session for an operation that carries a context.

    Configuration calls return a new driver and leave the receiver untouched,
    so one partially configured driver can seed several sessions. Each session
    builds its own Backoff from the builder when it is awaited. `sleep()` must
    come before `context()`.

    Awaiting resolves to `(ctx, result)` where `result` is the Result object
    returned by the final attempt, unchanged.

    Defaults:
        - every error is retryable
        - no notification
        - DefaultSleeper (asyncio.sleep)
        - no context: awaiting without one raises InvariantError

    Raises:
        ConfigurationError: From configuration calls that break ordering rules
        InvariantError: When awaited without a context, or awaited twice
    """

    __slots__ = ("_fn", "_builder", "_retryable", "_notify", "_sleeper", "_state", "_started", "_attempts")

    def __init__(self, fn: Operation[C, T, E], builder: BackoffBuilder) -> None:
        self._fn = fn
        self._builder = builder
        self._retryable: Predicate[E] = _always_retry
        self._notify: Notify[E] = _no_notify
        self._sleeper: Sleeper = DefaultSleeper()
        self._state: State[C, T, E] = Idle()
        self._started = False
        self._attempts = 0

    @property
    def _name(self) -> str:
        return _name_of(self._fn)

    def _ensure_configurable(self) -> None:
        if self._started:
            raise ConfigurationError.create(
                FaultCode.SESSION_STARTED, "retry cannot be reconfigured after it was awaited", operation=self._name,
            )

    def _evolve(self, **changes: Any) -> RetryWithContext[C, T, E]:
        self._ensure_configurable()
        clone = object.__new__(type(self))
        for slot in self.__slots__:
            setattr(clone, slot, changes.get(slot, getattr(self, slot)))
        return clone

    # ─────────────────────────────────────────────────────────────────
    # Configuration
    # ─────────────────────────────────────────────────────────────────

    def sleep(self, sleeper: Sleeper | SleepFn) -> RetryWithContext[C, T, E]:
        """Replace the suspension mechanism. Must be called before context()."""
        self._ensure_configurable()
        if not (isinstance(self._state, Idle) and self._state.ctx is MISSING):
            raise ConfigurationError.create(
                FaultCode.SLEEPER_AFTER_CONTEXT, "sleep must be set before context", operation=self._name,
            )
        return self._evolve(_sleeper=as_sleeper(sleeper))

    def context(self, ctx: C) -> RetryWithContext[C, T, E]:
        """Supply the initial context. Any value, including None, is a valid context."""
        return self._evolve(_state=Idle(ctx))

    def when(self, retryable: Predicate[E]) -> RetryWithContext[C, T, E]:
        """Only retry errors for which `retryable(error)` is true.

        Example:
            >>> retry_with_context(fetch, builder).context(conn).when(lambda e: str(e) == "EOF")
        """
        return self._evolve(_retryable=retryable)

    def notify(self, notify: Notify[E]) -> RetryWithContext[C, T, E]:
        """Call `notify(error, delay)` before each scheduled sleep."""
        return self._evolve(_notify=notify)

    # ─────────────────────────────────────────────────────────────────
    # Execution
    # ─────────────────────────────────────────────────────────────────

    def __await__(self) -> Generator[Any, Any, tuple[C, Result[T, E]]]:
        if self._started:
            raise InvariantError.create(
                FaultCode.ALREADY_AWAITED, "retry session can only be awaited once", operation=self._name,
            )
        self._started = True
        backoff = self._builder.build()
        try:
            return (yield from self._drive(backoff))
        finally:
            # Releases whichever context or sub-awaitable is still held, on
            # resolution as well as on cancellation.
            self._state = Idle()

    async def run(self) -> tuple[C, Result[T, E]]:
        """Coroutine form of `await self`, for asyncio.run() and create_task()."""
        return await self

    def _drive(self, backoff: Backoff) -> Generator[Any, Any, tuple[C, Result[T, E]]]:
        while True:
            match self._state:
                case Idle(ctx=ctx):
                    if ctx is MISSING:
                        raise InvariantError.create(
                            FaultCode.CONTEXT_MISSING, "context must be valid", operation=self._name,
                        )
                    self._attempts += 1
                    self._state = Polling(self._fn(ctx))
                case Polling(fut=fut):
                    ctx, result = yield from fut.__await__()
                    if result.is_ok():
                        return ctx, result
                    err = result.unwrap_err()
                    if not self._retryable(err):
                        logger.debug(f"[{self._name}] attempt {self._attempts} failed with a non-retryable error")
                        return ctx, result
                    if (delay := backoff.next()) is None:
                        logger.debug(f"[{self._name}] attempt {self._attempts} failed, backoff exhausted")
                        return ctx, result
                    logger.debug(f"[{self._name}] attempt {self._attempts} failed, retrying in {delay:.3f}s")
                    self._notify(err, delay)
                    self._state = Sleeping(ctx, self._sleeper.sleep(delay))
                case Sleeping(ctx=ctx, sleep=suspension):
                    yield from suspension.__await__()
                    self._state = Idle(ctx)

    def __repr__(self) -> str:
        return f"RetryWithContext({self._name}, state={type(self._state).__name__}, attempts={self._attempts})"


def retry_with_context(
    fn: Operation[C, T, E],
    builder: BackoffBuilder | None = None,
) -> RetryWithContext[C, T, E]:
    """Create a retry session for `fn`, using the configured default backoff when `builder` is None."""
    return RetryWithContext(fn, builder if builder is not None else default_builder())
