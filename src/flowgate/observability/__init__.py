"""Prometheus metrics exporter for flowgate executors.

Metrics exposed:
- flowgate_tasks_total: Settled tasks by status
- flowgate_task_duration_seconds: Admission-to-settlement time histogram
- flowgate_task_wait_seconds: Time spent queued before admission
- flowgate_tasks_admitted_total: Tasks that left the queue
- flowgate_queue_depth: Tasks waiting to be admitted
- flowgate_tasks_in_flight: Tasks currently holding a slot
- flowgate_concurrency_limit: Configured concurrency cap (absent if unbounded)
- flowgate_abandoned_tasks: Timed-out tasks still running in the background

Usage:
    from flowgate.observability import PrometheusMetrics

    metrics = PrometheusMetrics()
    executor = Executor(config, hooks=[metrics.create_hook()])
    metrics.bind(executor)

    print(metrics.export())
"""

from __future__ import annotations

import bisect
from collections import defaultdict
from typing import TYPE_CHECKING

from flowgate.core.hooks import ExecutorHook

if TYPE_CHECKING:
    from flowgate.core.executor import Executor
    from flowgate.core.models import QueuedTask, TaskOutcome


class _Histogram:
    """Fixed-bucket histogram; memory does not grow with observations."""

    __slots__ = ("buckets", "counts", "sum", "count")

    def __init__(self, buckets: list[float]) -> None:
        self.buckets = buckets
        self.counts = [0] * len(buckets)
        self.sum: float = 0.0
        self.count: int = 0

    def observe(self, value: float) -> None:
        idx = bisect.bisect_left(self.buckets, value)
        if idx < len(self.buckets):
            self.counts[idx] += 1
        self.sum += value
        self.count += 1

    def lines(self, name: str, labels: str = "") -> list[str]:
        prefix = f"{labels}," if labels else ""
        suffix = f"{{{labels}}}" if labels else ""
        out: list[str] = []
        cumulative = 0
        for bucket, hits in zip(self.buckets, self.counts):
            cumulative += hits
            out.append(f'{name}_bucket{{{prefix}le="{bucket}"}} {cumulative}')
        out.append(f'{name}_bucket{{{prefix}le="+Inf"}} {self.count}')
        out.append(f"{name}_sum{suffix} {self.sum:.4f}")
        out.append(f"{name}_count{suffix} {self.count}")
        return out


class PrometheusMetrics:
    """Collects task outcomes and renders them in Prometheus text format.

    Counters and histograms are fed by the hook from :meth:`create_hook`;
    gauges are read from the executor passed to :meth:`bind` at export
    time.
    """

    def __init__(self) -> None:
        self._admitted_total: int = 0
        self._task_total: dict[str, int] = defaultdict(int)

        self._duration_buckets = [0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0]
        self._durations: dict[str, _Histogram] = {}
        self._wait = _Histogram([0.01, 0.1, 0.5, 1.0, 5.0, 30.0, 60.0, 300.0])

        self._executor: Executor | None = None

    def bind(self, executor: Executor) -> None:
        """Read queue, in-flight and abandoned gauges from *executor*."""
        self._executor = executor

    def record_admitted(self, task: QueuedTask) -> None:
        self._admitted_total += 1

    def record_settled(self, task: QueuedTask, outcome: TaskOutcome) -> None:
        status = outcome.status.value
        self._task_total[status] += 1
        histogram = self._durations.get(status)
        if histogram is None:
            histogram = self._durations[status] = _Histogram(self._duration_buckets)
        histogram.observe(outcome.duration_seconds)
        self._wait.observe(outcome.wait_seconds)

    def task_count(self, status: str) -> int:
        return self._task_total.get(status, 0)

    def export(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = [
            "# HELP flowgate_tasks_admitted_total Tasks admitted from the queue",
            "# TYPE flowgate_tasks_admitted_total counter",
            f"flowgate_tasks_admitted_total {self._admitted_total}",
            "",
            "# HELP flowgate_tasks_total Settled tasks by status",
            "# TYPE flowgate_tasks_total counter",
        ]
        for status, count in sorted(self._task_total.items()):
            lines.append(f'flowgate_tasks_total{{status="{status}"}} {count}')

        lines.extend(
            [
                "",
                "# HELP flowgate_task_duration_seconds Admission-to-settlement time in seconds",
                "# TYPE flowgate_task_duration_seconds histogram",
            ]
        )
        for status, histogram in sorted(self._durations.items()):
            lines.extend(histogram.lines("flowgate_task_duration_seconds", f'status="{status}"'))

        lines.extend(
            [
                "",
                "# HELP flowgate_task_wait_seconds Time spent queued before admission in seconds",
                "# TYPE flowgate_task_wait_seconds histogram",
            ]
        )
        if self._wait.count:
            lines.extend(self._wait.lines("flowgate_task_wait_seconds"))

        if self._executor is not None:
            stats = self._executor.stats()
            lines.extend(
                [
                    "",
                    "# HELP flowgate_queue_depth Tasks waiting to be admitted",
                    "# TYPE flowgate_queue_depth gauge",
                    f"flowgate_queue_depth {stats.queued}",
                    "",
                    "# HELP flowgate_tasks_in_flight Tasks currently holding a slot",
                    "# TYPE flowgate_tasks_in_flight gauge",
                    f"flowgate_tasks_in_flight {stats.in_flight}",
                    "",
                    "# HELP flowgate_abandoned_tasks Timed-out tasks still running in the background",
                    "# TYPE flowgate_abandoned_tasks gauge",
                    f"flowgate_abandoned_tasks {stats.abandoned_running}",
                ]
            )
            if stats.max_concurrent_tasks is not None:
                lines.extend(
                    [
                        "",
                        "# HELP flowgate_concurrency_limit Configured concurrency cap",
                        "# TYPE flowgate_concurrency_limit gauge",
                        f"flowgate_concurrency_limit {stats.max_concurrent_tasks}",
                    ]
                )

        return "\n".join(lines) + "\n"

    def create_hook(self) -> PrometheusMetricsHook:
        """Create an ExecutorHook that feeds this collector."""
        return PrometheusMetricsHook(self)


class PrometheusMetricsHook(ExecutorHook):
    """ExecutorHook implementation that feeds :class:`PrometheusMetrics`."""

    def __init__(self, metrics: PrometheusMetrics) -> None:
        self._metrics = metrics

    async def on_admitted(self, task: QueuedTask) -> None:
        self._metrics.record_admitted(task)

    async def on_settled(self, task: QueuedTask, outcome: TaskOutcome) -> None:
        self._metrics.record_settled(task, outcome)
