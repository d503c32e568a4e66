"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from flowgate.core.events import EventBus
from flowgate.core.executor import Executor
from flowgate.core.models import ExecutorConfig


@pytest.fixture()
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def fast_config() -> ExecutorConfig:
    """10ms ticks, two slots, one-second deadline."""
    return ExecutorConfig(max_rate_per_second=100, max_concurrent_tasks=2, task_timeout_seconds=1.0)


@pytest.fixture()
async def executor(fast_config: ExecutorConfig) -> AsyncIterator[Executor]:
    ex = Executor(fast_config)
    yield ex
    await ex.shutdown()


@pytest.fixture()
def release() -> asyncio.Event:
    """Event that tasks under test block on until the test sets it."""
    return asyncio.Event()
