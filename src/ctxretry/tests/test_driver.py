"""Tests for the context-carrying retry driver.

Validates:
- Attempt counting against the backoff schedule
- Predicate short-circuit and notify ordering
- Context threading from attempt to attempt
- Configuration and invariant faults
- Cancellation while polling and while sleeping
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest

from ctxretry import (
    ConfigurationError,
    ConstantBuilder,
    Err,
    ExponentialBuilder,
    FaultCode,
    InvariantError,
    Ok,
    Result,
    RetryWithContext,
    ScheduleBuilder,
    retry_with_context,
)

if TYPE_CHECKING:
    from .conftest import RecordingSleeper


class Flaky(Exception):
    """Error tagged with the attempt that produced it."""

    def __init__(self, message: str, attempt: int = 0) -> None:
        super().__init__(message)
        self.attempt = attempt


@dataclass
class Conn:
    """Mutable context recording which attempts used it."""

    seen: list[int] = field(default_factory=list)


def failing(times: int, value: str = "done"):
    """Operation that fails `times` times, then succeeds with `value`."""
    calls = 0

    async def op(conn: Conn) -> tuple[Conn, Result[str, Flaky]]:
        nonlocal calls
        calls += 1
        conn.seen.append(calls)
        if calls <= times:
            return conn, Err(Flaky("retryable", calls))
        return conn, Ok(f"{value}@{calls}")

    op.calls = lambda: calls  # type: ignore[attr-defined]
    return op


@dataclass
class SpyBackoff:
    delays: list[float]
    calls: int = 0

    def next(self) -> float | None:
        self.calls += 1
        return self.delays.pop(0) if self.delays else None


@dataclass
class SpyBuilder:
    delays: tuple[float, ...]
    built: list[SpyBackoff] = field(default_factory=list)

    def build(self) -> SpyBackoff:
        self.built.append(backoff := SpyBackoff(list(self.delays)))
        return backoff


# ─────────────────────────────────────────────────────────────────────────────
# Scenarios
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_not_retryable_error_runs_once(sleeper: RecordingSleeper) -> None:
    """A rejected error ends the session after one attempt without sleeping."""
    calls = 0

    async def op(conn: Conn) -> tuple[Conn, Result[int, Exception]]:
        nonlocal calls
        calls += 1
        return conn, Err(Exception("not retryable"))

    _, result = await (
        retry_with_context(op, ExponentialBuilder(min_delay=0.001).without_max_times())
        .sleep(sleeper)
        .context(Conn())
        .when(lambda e: str(e) == "retryable")
    )

    assert result.is_err()
    assert str(result.unwrap_err()) == "not retryable"
    assert calls == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_exhausted_schedule_returns_last_attempt(sleeper: RecordingSleeper) -> None:
    """Two delays then exhaustion: three attempts, two notifications."""
    op = failing(times=10)
    notified: list[tuple[Flaky, float]] = []

    conn, result = await (
        retry_with_context(op, ScheduleBuilder((0.001, 0.001)))
        .sleep(sleeper)
        .context(Conn())
        .notify(lambda e, d: notified.append((e, d)))
    )

    assert op.calls() == 3
    assert result.unwrap_err().attempt == 3
    assert [(e.attempt, d) for e, d in notified] == [(1, 0.001), (2, 0.001)]
    assert conn.seen == [1, 2, 3]


@pytest.mark.asyncio
async def test_success_on_second_attempt(sleeper: RecordingSleeper) -> None:
    """One failure, one sleep, then the second attempt's value and context."""
    calls = 0

    async def op(ctx: int) -> tuple[int, Result[str, str]]:
        nonlocal calls
        calls += 1
        return ctx + 1, (Ok(f"value-{ctx}") if calls == 2 else Err("retryable"))

    ctx, result = await (
        retry_with_context(op, ConstantBuilder(delay=0.001).without_max_times())
        .sleep(sleeper)
        .context(0)
    )

    assert calls == 2
    assert sleeper.delays == [0.001]
    assert result == Ok("value-1")
    assert ctx == 2


# ─────────────────────────────────────────────────────────────────────────────
# Schedule Properties
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize("n", [0, 1, 4])
async def test_n_delays_mean_n_plus_one_attempts(n: int, sleeper: RecordingSleeper) -> None:
    op = failing(times=100)
    notified: list[float] = []
    delays = tuple(0.001 * (i + 1) for i in range(n))

    await (
        retry_with_context(op, ScheduleBuilder(delays))
        .sleep(sleeper)
        .context(Conn())
        .notify(lambda _, d: notified.append(d))
    )

    assert op.calls() == n + 1
    assert notified == list(delays)
    assert sleeper.delays == list(delays)


@pytest.mark.asyncio
async def test_notify_follows_backoff_order(sleeper: RecordingSleeper) -> None:
    op = failing(times=3)
    notified: list[tuple[int, float]] = []

    _, result = await (
        retry_with_context(op, ExponentialBuilder(min_delay=0.5, max_times=5))
        .sleep(sleeper)
        .context(Conn())
        .notify(lambda e, d: notified.append((e.attempt, d)))
    )

    assert result == Ok("done@4")
    assert notified == [(1, 0.5), (2, 1.0), (3, 2.0)]


@pytest.mark.asyncio
async def test_rejected_error_never_consults_backoff(sleeper: RecordingSleeper) -> None:
    builder = SpyBuilder((0.001, 0.001))

    await retry_with_context(failing(times=5), builder).sleep(sleeper).context(Conn()).when(lambda _: False)

    assert builder.built[0].calls == 0


@pytest.mark.asyncio
async def test_backoff_not_queried_after_exhaustion(sleeper: RecordingSleeper) -> None:
    builder = SpyBuilder((0.001,))

    await retry_with_context(failing(times=5), builder).sleep(sleeper).context(Conn())

    assert builder.built[0].calls == 2


@pytest.mark.asyncio
async def test_predicate_sees_every_failure(sleeper: RecordingSleeper) -> None:
    seen: list[int] = []

    def retryable(e: Flaky) -> bool:
        seen.append(e.attempt)
        return e.attempt < 2

    _, result = await (
        retry_with_context(failing(times=5), ConstantBuilder(delay=0.001))
        .sleep(sleeper)
        .context(Conn())
        .when(retryable)
    )

    assert seen == [1, 2]
    assert result.unwrap_err().attempt == 2


# ─────────────────────────────────────────────────────────────────────────────
# Context and Result Threading
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_context_threads_through_attempts(sleeper: RecordingSleeper) -> None:
    conn = Conn()

    returned, _ = await (
        retry_with_context(failing(times=2), ConstantBuilder(delay=0.001))
        .sleep(sleeper)
        .context(conn)
    )

    assert returned is conn
    assert conn.seen == [1, 2, 3]


@pytest.mark.asyncio
async def test_final_result_is_returned_unchanged(sleeper: RecordingSleeper) -> None:
    produced: list[Result[int, str]] = []

    async def op(ctx: None) -> tuple[None, Result[int, str]]:
        produced.append(res := Err("boom"))
        return ctx, res

    _, result = await retry_with_context(op, ScheduleBuilder((0.001,))).sleep(sleeper).context(None)

    assert result is produced[-1]
    assert len(produced) == 2


@pytest.mark.asyncio
async def test_none_is_a_valid_context(sleeper: RecordingSleeper) -> None:
    async def op(ctx: None) -> tuple[None, Result[str, str]]:
        return ctx, Ok("ok")

    ctx, result = await retry_with_context(op, ConstantBuilder()).sleep(sleeper).context(None)

    assert ctx is None
    assert result.unwrap() == "ok"


@pytest.mark.asyncio
async def test_operation_exception_propagates(sleeper: RecordingSleeper) -> None:
    async def op(ctx: Conn) -> tuple[Conn, Result[str, str]]:
        raise KeyError("broken")

    with pytest.raises(KeyError):
        await retry_with_context(op, ConstantBuilder()).sleep(sleeper).context(Conn())


# ─────────────────────────────────────────────────────────────────────────────
# Sleepers
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_plain_sleep_function_is_accepted() -> None:
    requested: list[float] = []

    async def fake_sleep(delay: float) -> None:
        requested.append(delay)

    await retry_with_context(failing(times=1), ConstantBuilder(delay=0.25)).sleep(fake_sleep).context(Conn())

    assert requested == [0.25]


@pytest.mark.asyncio
async def test_default_sleeper_really_waits() -> None:
    loop = asyncio.get_running_loop()
    start = loop.time()

    _, result = await retry_with_context(failing(times=1), ConstantBuilder(delay=0.02)).context(Conn())

    assert result.is_ok()
    assert loop.time() - start >= 0.015


# ─────────────────────────────────────────────────────────────────────────────
# Faults
# ─────────────────────────────────────────────────────────────────────────────


def test_sleep_after_context_fails_immediately(sleeper: RecordingSleeper) -> None:
    """Configuration fault is raised at configuration time, not on await."""
    driver = retry_with_context(failing(times=0), ConstantBuilder()).context(Conn())

    with pytest.raises(ConfigurationError) as exc_info:
        driver.sleep(sleeper)

    assert exc_info.value.code == FaultCode.SLEEPER_AFTER_CONTEXT
    assert exc_info.value.fault.is_configuration
    assert "sleep must be set before context" in str(exc_info.value)


@pytest.mark.asyncio
async def test_await_without_context_is_invariant_fault() -> None:
    with pytest.raises(InvariantError) as exc_info:
        await retry_with_context(failing(times=0), ConstantBuilder())

    assert exc_info.value.code == FaultCode.CONTEXT_MISSING
    assert not exc_info.value.fault.is_configuration


@pytest.mark.asyncio
async def test_driver_cannot_be_awaited_twice(sleeper: RecordingSleeper) -> None:
    driver = retry_with_context(failing(times=0), ConstantBuilder()).sleep(sleeper).context(Conn())
    await driver

    with pytest.raises(InvariantError) as exc_info:
        await driver

    assert exc_info.value.code == FaultCode.ALREADY_AWAITED


@pytest.mark.asyncio
async def test_reconfiguring_started_driver_fails(sleeper: RecordingSleeper) -> None:
    driver = retry_with_context(failing(times=0), ConstantBuilder()).sleep(sleeper).context(Conn())
    await driver

    with pytest.raises(ConfigurationError) as exc_info:
        driver.when(lambda _: True)

    assert exc_info.value.code == FaultCode.SESSION_STARTED


def test_configuration_returns_new_driver() -> None:
    base = retry_with_context(failing(times=0), ConstantBuilder())
    configured = base.when(lambda _: False)

    assert configured is not base
    assert isinstance(configured, RetryWithContext)
    assert "state=Idle" in repr(configured)


@pytest.mark.asyncio
async def test_sibling_sessions_build_their_own_backoff(sleeper: RecordingSleeper) -> None:
    calls: list[int] = []

    async def op(tag: int) -> tuple[int, Result[str, Flaky]]:
        calls.append(tag)
        return tag, Err(Flaky("retryable", len(calls)))

    base = retry_with_context(op, ScheduleBuilder((0.001, 0.001))).sleep(sleeper)
    first, second = base.context(1), base.context(2)

    await first
    await second

    assert calls == [1, 1, 1, 2, 2, 2]


@pytest.mark.asyncio
async def test_backoff_is_built_when_awaited(sleeper: RecordingSleeper) -> None:
    builder = SpyBuilder((0.001,))
    base = retry_with_context(failing(times=100), builder).sleep(sleeper)
    sessions = [base.context(Conn()) for _ in range(3)]

    assert builder.built == []
    for session in sessions:
        await session
    assert [b.calls for b in builder.built] == [2, 2, 2]


# ─────────────────────────────────────────────────────────────────────────────
# Cancellation
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cancel_while_sleeping() -> None:
    calls = 0
    sleeping = asyncio.Event()

    async def op(ctx: Conn) -> tuple[Conn, Result[str, str]]:
        nonlocal calls
        calls += 1
        return ctx, Err("boom")

    driver = retry_with_context(op, ConstantBuilder(delay=60.0)).context(Conn()).notify(lambda e, d: sleeping.set())
    task = asyncio.create_task(driver.run())
    await sleeping.wait()
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert calls == 1
    assert "state=Idle" in repr(driver)


@pytest.mark.asyncio
async def test_cancel_while_polling_tears_down_attempt() -> None:
    started = asyncio.Event()
    torn_down = False

    async def op(ctx: Conn) -> tuple[Conn, Result[str, str]]:
        nonlocal torn_down
        started.set()
        try:
            await asyncio.Event().wait()
        finally:
            torn_down = True
        return ctx, Ok("unreachable")

    task = asyncio.create_task(retry_with_context(op, ConstantBuilder()).context(Conn()).run())
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert torn_down


# ─────────────────────────────────────────────────────────────────────────────
# Defaults and Logging
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_default_builder_comes_from_settings(monkeypatch: pytest.MonkeyPatch,
                                                   sleeper: RecordingSleeper) -> None:
    monkeypatch.setenv("CTXRETRY_BACKOFF_STRATEGY", "constant")
    monkeypatch.setenv("CTXRETRY_BACKOFF_MIN_DELAY", "0.125")
    monkeypatch.setenv("CTXRETRY_BACKOFF_MAX_TIMES", "2")
    op = failing(times=10)

    await retry_with_context(op).sleep(sleeper).context(Conn())

    assert op.calls() == 3
    assert sleeper.delays == [0.125, 0.125]


@pytest.mark.asyncio
async def test_scheduled_retries_are_logged(caplog: pytest.LogCaptureFixture, sleeper: RecordingSleeper) -> None:
    caplog.set_level(logging.DEBUG, logger="ctxretry.retry")

    await retry_with_context(failing(times=1), ConstantBuilder(delay=0.5)).sleep(sleeper).context(Conn())

    messages = [r.getMessage() for r in caplog.records if r.name == "ctxretry.retry"]
    assert any("attempt 1 failed, retrying in 0.500s" in m for m in messages)
