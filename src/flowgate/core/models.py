"""Domain models for the flowgate executor.

Defines the executor configuration, the record kept for every queued
task, the outcome produced when a task's race settles, and the stats
snapshot exposed to callers.
"""

from __future__ import annotations

import enum
import math
import os
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Final

from flowgate.core.exceptions import ConfigurationError

# Type alias for the zero-argument async callables the executor runs
TaskCallable = Callable[[], Awaitable[Any]]

#: Sentinel for ``max_concurrent_tasks`` meaning "no concurrency cap".
UNBOUNDED: Final = None


class TimeoutPolicy(enum.Enum):
    """What happens to a task's work once its deadline wins the race.

    The in-flight slot is released under every policy.
    """

    DISCARD = "discard"  # keep running in the background, ignore the result
    CANCEL = "cancel"


class TaskStatus(enum.Enum):
    """How an admitted task's race settled."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ExecutorConfig:
    """Immutable executor tuning knobs.

    Attributes:
        max_rate_per_second: Upper bound on task starts per second.  One
            task at most is admitted every ``1 / max_rate_per_second``
            seconds.
        max_concurrent_tasks: Upper bound on tasks in flight, or
            :data:`UNBOUNDED`.  ``0`` is accepted as an alias for
            :data:`UNBOUNDED`.
        task_timeout_seconds: Deadline after which an in-flight task's
            slot is released.
        timeout_policy: Fate of the work once its deadline elapses.
    """

    max_rate_per_second: float
    max_concurrent_tasks: int | None = UNBOUNDED
    task_timeout_seconds: float = 5.0
    timeout_policy: TimeoutPolicy = TimeoutPolicy.DISCARD

    def __post_init__(self) -> None:
        rate = self.max_rate_per_second
        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            raise ConfigurationError(f"max_rate_per_second must be a number, got {rate!r}")
        if not math.isfinite(rate) or rate <= 0:
            raise ConfigurationError(
                f"max_rate_per_second must be a positive finite number, got {rate!r}"
            )

        limit = self.max_concurrent_tasks
        if limit is not UNBOUNDED:
            if isinstance(limit, bool) or not isinstance(limit, int):
                raise ConfigurationError(
                    f"max_concurrent_tasks must be an integer or UNBOUNDED, got {limit!r}"
                )
            if limit < 0:
                raise ConfigurationError(f"max_concurrent_tasks must not be negative, got {limit}")
            if limit == 0:
                object.__setattr__(self, "max_concurrent_tasks", UNBOUNDED)

        timeout = self.task_timeout_seconds
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ConfigurationError(f"task_timeout_seconds must be a number, got {timeout!r}")
        if not timeout > 0:
            raise ConfigurationError(f"task_timeout_seconds must be positive, got {timeout!r}")

        if not isinstance(self.timeout_policy, TimeoutPolicy):
            try:
                policy = TimeoutPolicy(self.timeout_policy)
            except ValueError:
                raise ConfigurationError(
                    f"Unknown timeout_policy {self.timeout_policy!r}"
                ) from None
            object.__setattr__(self, "timeout_policy", policy)

    @property
    def tick_interval_seconds(self) -> float:
        return 1.0 / self.max_rate_per_second

    @property
    def is_unbounded(self) -> bool:
        return self.max_concurrent_tasks is UNBOUNDED

    @classmethod
    def from_env(cls, prefix: str = "FLOWGATE_") -> ExecutorConfig:
        """Build a config from ``<prefix>*`` environment variables.

        ``MAX_RATE_PER_SECOND`` is required; ``MAX_CONCURRENT_TASKS``,
        ``TASK_TIMEOUT_SECONDS`` and ``TIMEOUT_POLICY`` fall back to the
        dataclass defaults when unset.
        """
        env = os.environ
        raw_rate = env.get(f"{prefix}MAX_RATE_PER_SECOND")
        if raw_rate is None:
            raise ConfigurationError(f"{prefix}MAX_RATE_PER_SECOND is not set")

        kwargs: dict[str, Any] = {"max_rate_per_second": _parse(prefix, "MAX_RATE_PER_SECOND", raw_rate, float)}

        raw_limit = env.get(f"{prefix}MAX_CONCURRENT_TASKS")
        if raw_limit is not None and raw_limit.strip().lower() not in ("", "unbounded"):
            kwargs["max_concurrent_tasks"] = _parse(prefix, "MAX_CONCURRENT_TASKS", raw_limit, int)

        raw_timeout = env.get(f"{prefix}TASK_TIMEOUT_SECONDS")
        if raw_timeout is not None:
            kwargs["task_timeout_seconds"] = _parse(prefix, "TASK_TIMEOUT_SECONDS", raw_timeout, float)

        raw_policy = env.get(f"{prefix}TIMEOUT_POLICY")
        if raw_policy is not None:
            kwargs["timeout_policy"] = raw_policy.strip().lower()

        return cls(**kwargs)


def _parse(prefix: str, key: str, raw: str, kind: type) -> Any:
    try:
        return kind(raw)
    except ValueError:
        raise ConfigurationError(f"{prefix}{key} has an invalid value: {raw!r}") from None


@dataclass
class QueuedTask:
    """A submitted task waiting in (or just taken from) the queue."""

    func: TaskCallable
    name: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    submitted_at: float = field(default_factory=time.monotonic)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = getattr(self.func, "__qualname__", None) or repr(self.func)


@dataclass(frozen=True)
class TaskOutcome:
    """Settlement record for one admitted task.

    Timestamps are :func:`time.monotonic` readings.
    """

    task_id: str
    name: str
    status: TaskStatus
    submitted_at: float
    started_at: float
    finished_at: float
    error: str | None = None

    @property
    def wait_seconds(self) -> float:
        """Time spent queued before admission."""
        return self.started_at - self.submitted_at

    @property
    def duration_seconds(self) -> float:
        """Time from admission to settlement."""
        return self.finished_at - self.started_at


@dataclass(frozen=True)
class ExecutorStats:
    """Point-in-time snapshot of executor state and lifetime counters."""

    queued: int
    in_flight: int
    max_concurrent_tasks: int | None
    submitted: int
    admitted: int
    completed: int
    failed: int
    timed_out: int
    abandoned_running: int
    is_running: bool
    is_stopped: bool
