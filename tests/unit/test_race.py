"""Unit tests for the task/deadline race."""

from __future__ import annotations

import asyncio

import pytest

from flowgate.core.models import TaskStatus
from flowgate.core.race import discard_result, race_with_deadline, start_work


async def _ok() -> str:
    return "ok"


async def _boom() -> None:
    raise RuntimeError("boom")


class TestRaceWithDeadline:
    @pytest.mark.asyncio
    async def test_completed(self) -> None:
        status, exc = await race_with_deadline(start_work(_ok), 1.0)
        assert status is TaskStatus.COMPLETED
        assert exc is None

    @pytest.mark.asyncio
    async def test_failed_returns_exception(self) -> None:
        status, exc = await race_with_deadline(start_work(_boom), 1.0)
        assert status is TaskStatus.FAILED
        assert isinstance(exc, RuntimeError)

    @pytest.mark.asyncio
    async def test_synchronous_raise_is_a_failure(self) -> None:
        def not_async() -> None:
            raise ValueError("bad call")

        status, exc = await race_with_deadline(start_work(not_async), 1.0)  # type: ignore[arg-type]
        assert status is TaskStatus.FAILED
        assert isinstance(exc, ValueError)

    @pytest.mark.asyncio
    async def test_timeout_does_not_cancel_work(self, release: asyncio.Event) -> None:
        async def blocked() -> str:
            await release.wait()
            return "late"

        work = start_work(blocked)
        loop = asyncio.get_running_loop()
        began = loop.time()
        status, exc = await race_with_deadline(work, 0.05)
        elapsed = loop.time() - began

        assert status is TaskStatus.TIMED_OUT
        assert exc is None
        assert 0.04 <= elapsed < 0.5
        assert not work.done()

        release.set()
        assert await work == "late"

    @pytest.mark.asyncio
    async def test_cancelled_work_is_a_failure(self, release: asyncio.Event) -> None:
        work = start_work(release.wait)
        work.cancel()
        status, exc = await race_with_deadline(work, 1.0)
        assert status is TaskStatus.FAILED
        assert isinstance(exc, asyncio.CancelledError)


class TestDiscardResult:
    @pytest.mark.asyncio
    async def test_retrieves_late_exception(self, caplog: pytest.LogCaptureFixture) -> None:
        work = start_work(_boom)
        await asyncio.wait({work})
        with caplog.at_level("DEBUG", logger="flowgate.core.race"):
            discard_result(work)
        assert "failed after its deadline" in caplog.text
