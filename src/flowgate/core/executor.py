"""Rate- and concurrency-limited task executor: the central component.

Ties together the queue, the admission gate, and the timeout race:

1. :meth:`Executor.submit` appends a task to an unbounded FIFO queue.
2. :meth:`Executor.start` launches the scheduling loop, an
   :class:`asyncio.Task` that ticks every ``1 / max_rate_per_second``
   seconds.
3. On each tick the :class:`AdmissionGate` is consulted; if a slot is
   free and the queue is non-empty, the head task is admitted and its
   race against the deadline runs in the background.
4. When the race settles (completion, failure, or timeout) the slot is
   released exactly once, hooks run, and a lifecycle event is
   published on the :class:`EventBus`.
5. :meth:`Executor.stop` ends the loop for good.  Tasks already admitted
   keep running; queued tasks are never started.

At most one task is admitted per tick, so the start rate never exceeds
the configured rate.  Ticks are not caught up when the loop is late,
which makes the effective rate lower, never higher, under load.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import TYPE_CHECKING, Any

from flowgate.core.events import Event, EventBus, EventType
from flowgate.core.exceptions import TaskTimeoutError
from flowgate.core.gate import AdmissionGate, Slot
from flowgate.core.models import (
    ExecutorConfig,
    ExecutorStats,
    QueuedTask,
    TaskCallable,
    TaskOutcome,
    TaskStatus,
    TimeoutPolicy,
)
from flowgate.core.race import discard_result, race_with_deadline, start_work

if TYPE_CHECKING:
    from types import TracebackType

    from flowgate.core.hooks import ExecutorHook

logger = logging.getLogger(__name__)

_SETTLED_EVENTS = {
    TaskStatus.COMPLETED: EventType.TASK_COMPLETED,
    TaskStatus.FAILED: EventType.TASK_FAILED,
    TaskStatus.TIMED_OUT: EventType.TASK_TIMED_OUT,
}


class Executor:
    """Drains a queue of async tasks under a rate and a concurrency cap.

    The executor is bound to the event loop it is started on and is not
    thread-safe: call :meth:`submit` from other threads through
    ``loop.call_soon_threadsafe``.
    """

    def __init__(
        self,
        config: ExecutorConfig,
        event_bus: EventBus | None = None,
        hooks: list[ExecutorHook] | None = None,
    ) -> None:
        self._config = config
        self._event_bus = event_bus or EventBus()
        self._hooks: list[ExecutorHook] = hooks or []
        self._gate = AdmissionGate(config.max_concurrent_tasks)
        self._queue: deque[QueuedTask] = deque()
        self._stopped = False
        self._loop_task: asyncio.Task[None] | None = None
        self._races: set[asyncio.Task[None]] = set()
        self._abandoned: set[asyncio.Task[Any]] = set()
        self._background: set[asyncio.Task[None]] = set()
        # Admitted tasks whose settlement hooks and events have not finished.
        self._unsettled: int = 0
        self._idle = asyncio.Event()
        self._idle.set()

        self._submitted: int = 0
        self._admitted: int = 0
        self._completed: int = 0
        self._failed: int = 0
        self._timed_out: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def in_flight(self) -> int:
        return self._gate.in_flight

    @property
    def queued(self) -> int:
        return len(self._queue)

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def submit(self, task: TaskCallable, *, name: str | None = None) -> None:
        """Append *task* to the queue.  Never blocks and never fails.

        Tasks submitted after :meth:`stop` stay queued forever.
        """
        queued = QueuedTask(func=task, name=name or "")
        self._queue.append(queued)
        self._submitted += 1
        if self._stopped:
            logger.debug("Task %s (%s) submitted to a stopped executor", queued.id, queued.name)
        else:
            self._idle.clear()
        self._emit_later(
            EventType.TASK_SUBMITTED,
            {"task_id": queued.id, "name": queued.name, "queued": len(self._queue)},
        )

    def start(self) -> None:
        """Begin the scheduling loop on the running event loop.

        Calling it while the loop is already running does nothing, and
        so does calling it after :meth:`stop`.
        """
        if self._stopped:
            logger.warning("start() called on a stopped executor; ignoring")
            return
        if self.is_running:
            return
        self._loop_task = asyncio.get_running_loop().create_task(
            self._run_loop(), name="flowgate-scheduler"
        )
        logger.info(
            "Executor started (rate=%g/s, concurrency=%s, timeout=%gs, policy=%s)",
            self._config.max_rate_per_second,
            "unbounded" if self._config.is_unbounded else self._config.max_concurrent_tasks,
            self._config.task_timeout_seconds,
            self._config.timeout_policy.value,
        )

    def stop(self) -> None:
        """Stop admitting tasks.  Idempotent; in-flight tasks are untouched."""
        if self._stopped:
            return
        self._stopped = True
        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()
        self._refresh_idle()
        logger.info(
            "Executor stopped (%d queued, %d in flight)", len(self._queue), self._gate.in_flight
        )

    async def wait_idle(self) -> None:
        """Wait until no admitted task is still settling and nothing will start.

        Resolves once every admitted task has settled, including its
        ``on_settled`` hooks and settlement event, and either the queue is
        empty or the executor is stopped (a stopped queue never drains).
        """
        await self._idle.wait()

    async def shutdown(self, wait: bool = True) -> None:
        """Stop the loop and, if *wait*, wait for in-flight races to settle.

        Queued tasks are left unstarted.  Timed-out work abandoned in the
        background is not waited for.
        """
        self.stop()
        if self._loop_task is not None and not self._loop_task.done():
            await asyncio.wait({self._loop_task})
        if wait and self._races:
            await asyncio.gather(*self._races, return_exceptions=True)

    def stats(self) -> ExecutorStats:
        return ExecutorStats(
            queued=len(self._queue),
            in_flight=self._gate.in_flight,
            max_concurrent_tasks=self._config.max_concurrent_tasks,
            submitted=self._submitted,
            admitted=self._admitted,
            completed=self._completed,
            failed=self._failed,
            timed_out=self._timed_out,
            abandoned_running=len(self._abandoned),
            is_running=self.is_running,
            is_stopped=self._stopped,
        )

    async def __aenter__(self) -> Executor:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Scheduling loop
    # ------------------------------------------------------------------

    async def _run_loop(self) -> None:
        interval = self._config.tick_interval_seconds
        while not self._stopped:
            self._tick()
            await asyncio.sleep(interval)

    def _tick(self) -> bool:
        """Run one scheduling iteration.  Never suspends."""
        if self._stopped:
            return False
        return self._admit()

    def _admit(self) -> bool:
        if not self._queue:
            return False
        slot = self._gate.try_acquire()
        if slot is None:
            return False

        queued = self._queue.popleft()
        self._admitted += 1
        self._unsettled += 1
        logger.debug(
            "Admitted task %s (%s); %d in flight, %d queued",
            queued.id,
            queued.name,
            self._gate.in_flight,
            len(self._queue),
        )
        race = asyncio.create_task(self._run_race(queued, slot), name=f"flowgate-race-{queued.id}")
        self._races.add(race)
        race.add_done_callback(self._races.discard)
        return True

    # ------------------------------------------------------------------
    # Timeout race and settlement
    # ------------------------------------------------------------------

    async def _run_race(self, queued: QueuedTask, slot: Slot) -> None:
        try:
            await self._race_and_settle(queued, slot)
        finally:
            self._unsettled -= 1
            self._refresh_idle()

    async def _race_and_settle(self, queued: QueuedTask, slot: Slot) -> None:
        loop = asyncio.get_running_loop()
        started_at = time.monotonic()
        deadline = loop.time() + self._config.task_timeout_seconds
        work = start_work(queued.func, name=f"flowgate-task-{queued.id}")

        try:
            await self._run_hooks("on_admitted", queued)
            await self._event_bus.publish(
                Event(EventType.TASK_ADMITTED, {"task_id": queued.id, "name": queued.name})
            )
            status, exc = await race_with_deadline(work, max(0.0, deadline - loop.time()))
        except BaseException:
            self._abandon(work)
            raise
        finally:
            slot.release()

        finished_at = time.monotonic()
        error: str | None = None
        if status is TaskStatus.TIMED_OUT:
            self._timed_out += 1
            error = str(TaskTimeoutError(queued.name, self._config.task_timeout_seconds))
            self._abandon(work)
            logger.warning("Task %s: %s; slot released", queued.id, error)
        elif status is TaskStatus.FAILED:
            self._failed += 1
            error = repr(exc)
            logger.warning("Task %s (%s) failed: %s", queued.id, queued.name, error)
        else:
            self._completed += 1
            logger.debug("Task %s (%s) completed", queued.id, queued.name)

        outcome = TaskOutcome(
            task_id=queued.id,
            name=queued.name,
            status=status,
            submitted_at=queued.submitted_at,
            started_at=started_at,
            finished_at=finished_at,
            error=error,
        )
        await self._run_hooks("on_settled", queued, outcome)
        await self._event_bus.publish(
            Event(
                _SETTLED_EVENTS[status],
                {
                    "task_id": queued.id,
                    "name": queued.name,
                    "duration_seconds": outcome.duration_seconds,
                    "error": error,
                },
            )
        )

    def _abandon(self, work: asyncio.Task[Any]) -> None:
        if work.done():
            discard_result(work)
            return
        if self._config.timeout_policy is TimeoutPolicy.CANCEL:
            work.cancel()
        self._abandoned.add(work)
        work.add_done_callback(self._abandoned.discard)
        work.add_done_callback(discard_result)

    def _refresh_idle(self) -> None:
        if self._unsettled == 0 and (self._stopped or not self._queue):
            self._idle.set()

    # ------------------------------------------------------------------
    # Hooks and events
    # ------------------------------------------------------------------

    async def _run_hooks(self, method: str, *args: Any) -> None:
        for hook in self._hooks:
            try:
                await getattr(hook, method)(*args)
            except Exception:
                logger.exception("Hook %s.%s failed", type(hook).__name__, method)

    def _emit_later(self, event_type: EventType, payload: dict[str, Any]) -> None:
        """Publish from synchronous code.  Dropped when no loop is running."""
        if not self._event_bus.has_subscribers(event_type):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; %s event not published", event_type.value)
            return
        publish = loop.create_task(self._event_bus.publish(Event(event_type, payload)))
        self._background.add(publish)
        publish.add_done_callback(self._background.discard)
