"""Tests for the throttled decorator."""

from __future__ import annotations

import asyncio
import inspect

from flowgate.core.events import Event, EventType
from flowgate.core.executor import Executor
from flowgate.decorators import throttled


class TestThrottled:
    async def test_calls_are_submitted(self, executor: Executor) -> None:
        calls: list[tuple[int, str]] = []

        @throttled(executor)
        async def send(n: int, *, tag: str) -> None:
            calls.append((n, tag))

        assert send(1, tag="a") is None
        send(2, tag="b")
        assert executor.queued == 2
        assert calls == []

        executor.start()
        await asyncio.wait_for(executor.wait_idle(), timeout=2)
        assert calls == [(1, "a"), (2, "b")]

    async def test_preserves_metadata(self, executor: Executor) -> None:
        names: list[str] = []

        async def record(event: Event) -> None:
            names.append(event.payload["name"])

        executor.event_bus.subscribe(EventType.TASK_ADMITTED, record)

        @throttled(executor, name="custom")
        async def ping() -> None:
            """Ping the service."""

        assert ping.__name__ == "ping"
        assert ping.__doc__ == "Ping the service."
        assert inspect.iscoroutinefunction(ping.__wrapped__)

        ping()
        executor.start()
        await asyncio.wait_for(executor.wait_idle(), timeout=2)
        await executor.shutdown()
        assert names == ["custom"]
