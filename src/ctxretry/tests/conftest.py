"""Shared fixtures for ctxretry tests."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterator
from dataclasses import dataclass, field

import pytest

from ctxretry.foundation.config import clear_settings_cache


@pytest.fixture(autouse=True)
def clean_settings() -> Iterator[None]:
    """Reload settings from the (test-local) environment around each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@dataclass
class RecordingSleeper:
    """Sleeper that records requested delays and only yields to the loop once."""

    delays: list[float] = field(default_factory=list)

    def sleep(self, delay: float) -> Awaitable[None]:
        self.delays.append(delay)
        return asyncio.sleep(0)


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()
