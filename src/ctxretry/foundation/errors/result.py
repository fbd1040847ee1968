"""Result/Either type carried back by every retried operation.

An operation reports failure as data instead of raising, so the retry driver
can hand the error to the predicate and notifier and still return it, unchanged,
alongside the context:
- Functor: map, map_err
- Monad: flat_map (and_then), or_else
- Adapters: try_fn, try_async turn raising callables into Results
"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Callable,
    Generic,
    TypeVar,
    cast,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Iterator

T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Mapped success type
F = TypeVar("F")  # Mapped error type


class Result(Generic[T, E]):
    """Discriminated union representing success (Ok) or failure (Err).

    Examples:
        >>> result: Result[int, str] = Ok(42)
        >>> result.map(lambda x: x * 2).unwrap()
        84

        >>> error: Result[int, str] = Err("failed")
        >>> error.map(lambda x: x * 2).unwrap_err()
        'failed'

    Notes:
        - Uses __slots__, no per-instance dict
        - Never mutated; every operation returns a new Result
    """

    __slots__ = ("_value", "_is_ok")
    __match_args__ = ("_value",)

    def __init__(self, value: T | E, is_ok: bool) -> None:
        """Private constructor. Use Ok() or Err() instead."""
        self._value: T | E = value
        self._is_ok: bool = is_ok

    # ─────────────────────────────────────────────────────────────────
    # Type Checking
    # ─────────────────────────────────────────────────────────────────

    def is_ok(self) -> bool:
        """Check if Result is Ok variant."""
        return self._is_ok

    def is_err(self) -> bool:
        """Check if Result is Err variant."""
        return not self._is_ok

    # ─────────────────────────────────────────────────────────────────
    # Value Extraction
    # ─────────────────────────────────────────────────────────────────

    def unwrap(self) -> T:
        """Extract Ok value.

        Raises:
            RuntimeError: If Result is Err
        """
        if self._is_ok:
            return cast(T, self._value)
        raise RuntimeError(f"Called unwrap() on Err value: {self._value!r}")

    def unwrap_err(self) -> E:
        """Extract Err value.

        Raises:
            RuntimeError: If Result is Ok
        """
        if not self._is_ok:
            return cast(E, self._value)
        raise RuntimeError(f"Called unwrap_err() on Ok value: {self._value!r}")

    def unwrap_or(self, default: T) -> T:
        """Extract Ok value or return default."""
        return cast(T, self._value) if self._is_ok else default

    def unwrap_or_else(self, f: Callable[[E], T]) -> T:
        """Extract Ok value or compute from error."""
        return cast(T, self._value) if self._is_ok else f(cast(E, self._value))

    def expect(self, msg: str) -> T:
        """Extract Ok value, raising RuntimeError with `msg` on Err."""
        if self._is_ok:
            return cast(T, self._value)
        raise RuntimeError(f"{msg}: {self._value!r}")

    def ok(self) -> T | None:
        """Ok value or None."""
        return cast(T, self._value) if self._is_ok else None

    def err(self) -> E | None:
        """Err value or None."""
        return cast(E, self._value) if not self._is_ok else None

    # ─────────────────────────────────────────────────────────────────
    # Functor / Monad Operations
    # ─────────────────────────────────────────────────────────────────

    def map(self, f: Callable[[T], U]) -> Result[U, E]:
        """Apply f to the Ok value, pass Err through unchanged."""
        if self._is_ok:
            return Ok(f(cast(T, self._value)))
        return Err(cast(E, self._value))

    def map_err(self, f: Callable[[E], F]) -> Result[T, F]:
        """Apply f to the Err value, pass Ok through unchanged."""
        if not self._is_ok:
            return Err(f(cast(E, self._value)))
        return Ok(cast(T, self._value))

    def flat_map(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind: chain an operation that can itself fail.

        Example:
            >>> def positive(n: int) -> Result[int, str]:
            ...     return Ok(n) if n > 0 else Err("must be positive")
            >>> Ok(5).flat_map(positive).unwrap()
            5
        """
        if self._is_ok:
            return f(cast(T, self._value))
        return Err(cast(E, self._value))

    def and_then(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Alias for flat_map."""
        return self.flat_map(f)

    def or_else(self, f: Callable[[E], Result[T, F]]) -> Result[T, F]:
        """Recover from Err with f; Ok passes through."""
        if not self._is_ok:
            return f(cast(E, self._value))
        return Ok(cast(T, self._value))

    def inspect(self, f: Callable[[T], None]) -> Result[T, E]:
        """Call f with the Ok value for side effects, return self."""
        if self._is_ok:
            f(cast(T, self._value))
        return self

    def inspect_err(self, f: Callable[[E], None]) -> Result[T, E]:
        """Call f with the Err value for side effects, return self."""
        if not self._is_ok:
            f(cast(E, self._value))
        return self

    def match(self, *, ok: Callable[[T], U], err: Callable[[E], U]) -> U:
        """Exhaustive case analysis over both variants.

        Example:
            >>> Ok(42).match(ok=lambda x: f"success: {x}", err=lambda e: f"failed: {e}")
            'success: 42'
        """
        if self._is_ok:
            return ok(cast(T, self._value))
        return err(cast(E, self._value))

    # ─────────────────────────────────────────────────────────────────
    # Dunder Methods
    # ─────────────────────────────────────────────────────────────────

    def __bool__(self) -> bool:
        return self._is_ok

    def __repr__(self) -> str:
        return f"{'Ok' if self._is_ok else 'Err'}({self._value!r})"

    __str__ = __repr__

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return self._is_ok == other._is_ok and self._value == other._value

    def __hash__(self) -> int:
        return hash((self._is_ok, self._value))

    def __iter__(self) -> Iterator[T]:
        """Yield the Ok value (0 or 1 element)."""
        if self._is_ok:
            yield cast(T, self._value)


# ═════════════════════════════════════════════════════════════════════════════
# Constructor Functions
# ═════════════════════════════════════════════════════════════════════════════


def Ok(value: T) -> Result[T, E]:  # noqa: N802
    """Construct Ok variant (success)."""
    return Result(value, is_ok=True)


def Err(error: E) -> Result[T, E]:  # noqa: N802
    """Construct Err variant (failure)."""
    return Result(error, is_ok=False)


# ═════════════════════════════════════════════════════════════════════════════
# Exception Adapters
# ═════════════════════════════════════════════════════════════════════════════


def try_fn(
    fn: Callable[..., T],
    *args: object,
    catch: tuple[type[Exception], ...] = (Exception,),
    **kwargs: object,
) -> Result[T, Exception]:
    """Call fn, capturing exceptions listed in `catch` as Err.

    Anything not in `catch` propagates unchanged.

    Example:
        >>> try_fn(int, "42")
        Ok(42)
        >>> try_fn(int, "x", catch=(ValueError,)).is_err()
        True
    """
    try:
        return Ok(fn(*args, **kwargs))
    except catch as e:
        return Err(e)


async def try_async(
    fn: Callable[..., Awaitable[T]],
    *args: object,
    catch: tuple[type[Exception], ...] = (Exception,),
    **kwargs: object,
) -> Result[T, Exception]:
    """Await fn(*args, **kwargs), capturing exceptions listed in `catch` as Err."""
    try:
        return Ok(await fn(*args, **kwargs))
    except catch as e:
        return Err(e)
