"""Retry for operations that carry no context.

Runs on the same driver as RetryWithContext with `None` as the context, so
both variants share one state machine and one set of guarantees.

Example:
    >>> async def fetch() -> Result[str, Exception]:
    ...     return await try_async(client.get, "/health")
    >>>
    >>> result = await retry(fetch, ConstantBuilder(delay=0.5)).when(is_transient)
    >>>
    >>> @retrying(ExponentialBuilder(min_delay=0.1), when=is_transient)
    ... async def ping(host: str) -> Result[float, Exception]:
    ...     return await try_async(measure_rtt, host)
"""

from __future__ import annotations

from collections.abc import Awaitable, Generator
from functools import wraps
from typing import Any, Callable, Generic, ParamSpec, TypeVar

from ctxretry.foundation.errors import Result

from .backoff import BackoffBuilder, default_builder
from .driver import Notify, Predicate, RetryWithContext
from .sleep import Sleeper, SleepFn

T = TypeVar("T")
E = TypeVar("E")
P = ParamSpec("P")


class Retry(Generic[T, E]):
    """Awaitable retry session for `fn: () -> Awaitable[Result[T, E]]`.

    Same configuration surface as RetryWithContext minus context(); since no
    context is ever set by the caller, sleep() can be called at any point
    before the session is awaited.
    """

    __slots__ = ("_driver", "_ready")

    def __init__(self, fn: Callable[[], Awaitable[Result[T, E]]], builder: BackoffBuilder) -> None:
        @wraps(fn)
        async def attempt(ctx: None) -> tuple[None, Result[T, E]]:
            return ctx, await fn()

        self._driver: RetryWithContext[None, T, E] = RetryWithContext(attempt, builder)
        self._ready = False

    @classmethod
    def _wrap(cls, driver: RetryWithContext[None, T, E]) -> Retry[T, E]:
        clone = object.__new__(cls)
        clone._driver, clone._ready = driver, False
        return clone

    def sleep(self, sleeper: Sleeper | SleepFn) -> Retry[T, E]:
        return self._wrap(self._driver.sleep(sleeper))

    def when(self, retryable: Predicate[E]) -> Retry[T, E]:
        return self._wrap(self._driver.when(retryable))

    def notify(self, notify: Notify[E]) -> Retry[T, E]:
        return self._wrap(self._driver.notify(notify))

    def __await__(self) -> Generator[Any, Any, Result[T, E]]:
        if not self._ready:
            self._driver, self._ready = self._driver.context(None), True
        _, result = yield from self._driver.__await__()
        return result

    async def run(self) -> Result[T, E]:
        return await self


def retry(
    fn: Callable[[], Awaitable[Result[T, E]]],
    builder: BackoffBuilder | None = None,
) -> Retry[T, E]:
    """Create a context-free retry session, using the configured default backoff when `builder` is None."""
    return Retry(fn, builder if builder is not None else default_builder())


def retrying(
    builder: BackoffBuilder | None = None,
    *,
    when: Predicate[E] | None = None,
    notify: Notify[E] | None = None,
    sleeper: Sleeper | SleepFn | None = None,
) -> Callable[[Callable[P, Awaitable[Result[T, E]]]], Callable[P, Awaitable[Result[T, E]]]]:
    """Decorator: every call of the wrapped coroutine function runs as its own retry session.

    A fresh backoff is built per call.
    """
    def decorator(fn: Callable[P, Awaitable[Result[T, E]]]) -> Callable[P, Awaitable[Result[T, E]]]:
        @wraps(fn)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T, E]:
            @wraps(fn)
            def call() -> Awaitable[Result[T, E]]:
                return fn(*args, **kwargs)

            session = retry(call, builder)
            if sleeper is not None:
                session = session.sleep(sleeper)
            if when is not None:
                session = session.when(when)
            if notify is not None:
                session = session.notify(notify)
            return await session
        return wrapper
    return decorator
