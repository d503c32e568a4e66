"""Async event bus for observing executor activity.

The executor publishes one event when a task is submitted, one when it
is admitted, and one when its race settles (completed, failed or timed
out).  Admission and settlement events are awaited inside the task's
race, so a slow subscriber delays only that task's settlement, never the
scheduling loop.  ``task.submitted`` comes from the synchronous
:meth:`Executor.submit`, so it is published from a background task and
only while an event loop is running.

Subscribers may be coroutine functions or plain callables; an exception
from either kind is logged and does not reach the executor.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections import defaultdict
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Lifecycle events emitted by the executor."""

    TASK_SUBMITTED = "task.submitted"
    TASK_ADMITTED = "task.admitted"
    TASK_COMPLETED = "task.completed"
    TASK_FAILED = "task.failed"
    TASK_TIMED_OUT = "task.timed_out"


@dataclass(frozen=True)
class Event:
    """An immutable event carrying contextual payload."""

    event_type: EventType
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


# Subscriber callable type
Subscriber = Callable[[Event], Coroutine[Any, Any, None] | None]


class EventBus:
    """In-process async event bus.

    Subscribers are invoked concurrently via :func:`asyncio.gather` when
    an event is published.  A failing subscriber does **not** prevent
    other subscribers from executing.
    """

    def __init__(self) -> None:
        self._subscribers: dict[EventType, list[Subscriber]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Subscriber) -> None:
        """Register *handler* for *event_type*."""
        self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Subscriber) -> None:
        """Remove a previously registered handler."""
        with contextlib.suppress(ValueError):
            self._subscribers[event_type].remove(handler)

    def has_subscribers(self, event_type: EventType) -> bool:
        return bool(self._subscribers.get(event_type))

    async def publish(self, event: Event) -> None:
        """Dispatch *event* to all matching subscribers concurrently."""
        handlers = list(self._subscribers.get(event.event_type, []))
        if not handlers:
            return

        results = await asyncio.gather(
            *(_dispatch(h, event) for h in handlers), return_exceptions=True
        )
        for idx, result in enumerate(results):
            if isinstance(result, Exception):
                logger.error(
                    "Subscriber %s raised %r for event %s",
                    getattr(handlers[idx], "__qualname__", repr(handlers[idx])),
                    result,
                    event.event_type.value,
                )


async def _dispatch(handler: Subscriber, event: Event) -> None:
    result = handler(event)
    if inspect.isawaitable(result):
        await result
