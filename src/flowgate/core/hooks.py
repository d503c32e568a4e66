"""Executor hooks — middleware for the task lifecycle.

Hooks let you inject cross-cutting logic (logging, metrics, tracing)
that runs when a task is admitted and when its race settles, without
modifying the task functions themselves.

Usage::

    class TimingHook(ExecutorHook):
        async def on_settled(self, task, outcome):
            print(f"{task.name} took {outcome.duration_seconds:.3f}s")

    executor = Executor(config, hooks=[TimingHook()])
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flowgate.core.models import QueuedTask, TaskOutcome


class ExecutorHook:
    """Base class for executor hooks.

    Override :meth:`on_admitted` and/or :meth:`on_settled`.  Both are
    no-ops by default.  An exception raised by a hook is logged and
    otherwise ignored: it never delays slot release or stops the loop.
    """

    async def on_admitted(self, task: QueuedTask) -> None:
        """Called once the task has left the queue and holds a slot."""

    async def on_settled(self, task: QueuedTask, outcome: TaskOutcome) -> None:
        """Called after the race settles (completion, failure **or** timeout)."""
