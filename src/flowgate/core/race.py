"""Timeout race between an admitted task and its deadline.

The race is an explicit two-way wait: :func:`race_with_deadline` waits
for whichever comes first, the task settling or the deadline elapsing,
and reports which side won.  It never cancels the task and never
re-raises the task's exception; deciding what to do with abandoned work
is left to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from flowgate.core.models import TaskCallable, TaskStatus

logger = logging.getLogger(__name__)


async def _invoke(func: TaskCallable) -> Any:
    return await func()


def start_work(func: TaskCallable, name: str | None = None) -> asyncio.Task[Any]:
    """Schedule *func* on the running loop.

    A callable that raises before returning an awaitable fails the
    returned task like any other error.
    """
    return asyncio.create_task(_invoke(func), name=name)


async def race_with_deadline(
    work: asyncio.Future[Any], timeout_seconds: float
) -> tuple[TaskStatus, BaseException | None]:
    """Wait for *work* for at most *timeout_seconds*.

    Returns the settled status and, for failures, the exception the
    work raised.  Cancelling the race does not cancel *work*.
    """
    done, _ = await asyncio.wait({work}, timeout=timeout_seconds)
    if work not in done:
        return TaskStatus.TIMED_OUT, None
    if work.cancelled():
        return TaskStatus.FAILED, asyncio.CancelledError()
    exc = work.exception()
    if exc is not None:
        return TaskStatus.FAILED, exc
    return TaskStatus.COMPLETED, None


def discard_result(work: asyncio.Future[Any]) -> None:
    """Done-callback that swallows the result of abandoned work.

    Retrieving the exception keeps asyncio from reporting it as never
    retrieved once the work finishes after its deadline.
    """
    if work.cancelled():
        logger.debug("Abandoned work %r was cancelled", work)
        return
    exc = work.exception()
    if exc is not None:
        logger.debug("Abandoned work %r failed after its deadline: %r", work, exc)
    else:
        logger.debug("Abandoned work %r finished after its deadline", work)
