"""Exception hierarchy for flowgate."""

from __future__ import annotations


class FlowgateError(Exception):
    """Base exception for all flowgate errors."""


class ConfigurationError(FlowgateError, ValueError):
    """Raised when an :class:`ExecutorConfig` is invalid."""


class TaskTimeoutError(FlowgateError, TimeoutError):
    """Describes a task whose deadline elapsed before it settled.

    Never raised to the submitter; its message is recorded on the
    task's :class:`TaskOutcome`.
    """

    def __init__(self, task_name: str, timeout_seconds: float) -> None:
        super().__init__(f"Task {task_name!r} timed out after {timeout_seconds:g}s")
        self.task_name = task_name
        self.timeout_seconds = timeout_seconds
