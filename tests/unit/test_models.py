"""Unit tests for executor configuration and records."""

from __future__ import annotations

import math

import pytest

from flowgate.core.exceptions import ConfigurationError, FlowgateError, TaskTimeoutError
from flowgate.core.models import (
    UNBOUNDED,
    ExecutorConfig,
    QueuedTask,
    TaskOutcome,
    TaskStatus,
    TimeoutPolicy,
)


async def _noop() -> None:
    pass


class TestExecutorConfig:
    def test_defaults(self) -> None:
        config = ExecutorConfig(max_rate_per_second=4)
        assert config.max_concurrent_tasks is UNBOUNDED
        assert config.is_unbounded
        assert config.task_timeout_seconds == 5.0
        assert config.timeout_policy is TimeoutPolicy.DISCARD

    def test_tick_interval(self) -> None:
        assert ExecutorConfig(max_rate_per_second=4).tick_interval_seconds == pytest.approx(0.25)
        assert ExecutorConfig(max_rate_per_second=0.5).tick_interval_seconds == pytest.approx(2.0)

    @pytest.mark.parametrize("rate", [0, -1, math.inf, math.nan])
    def test_rejects_bad_rate(self, rate: float) -> None:
        with pytest.raises(ConfigurationError):
            ExecutorConfig(max_rate_per_second=rate)

    def test_rejects_non_numeric_rate(self) -> None:
        with pytest.raises(ConfigurationError):
            ExecutorConfig(max_rate_per_second="10")  # type: ignore[arg-type]

    def test_zero_concurrency_means_unbounded(self) -> None:
        config = ExecutorConfig(max_rate_per_second=1, max_concurrent_tasks=0)
        assert config.max_concurrent_tasks is UNBOUNDED

    @pytest.mark.parametrize("limit", [-1, 1.5, True])
    def test_rejects_bad_concurrency(self, limit: object) -> None:
        with pytest.raises(ConfigurationError):
            ExecutorConfig(max_rate_per_second=1, max_concurrent_tasks=limit)  # type: ignore[arg-type]

    @pytest.mark.parametrize("timeout", [0, -0.5])
    def test_rejects_bad_timeout(self, timeout: float) -> None:
        with pytest.raises(ConfigurationError):
            ExecutorConfig(max_rate_per_second=1, task_timeout_seconds=timeout)

    def test_policy_from_string(self) -> None:
        config = ExecutorConfig(max_rate_per_second=1, timeout_policy="cancel")  # type: ignore[arg-type]
        assert config.timeout_policy is TimeoutPolicy.CANCEL

    def test_unknown_policy(self) -> None:
        with pytest.raises(ConfigurationError, match="timeout_policy"):
            ExecutorConfig(max_rate_per_second=1, timeout_policy="leak")  # type: ignore[arg-type]

    def test_configuration_error_is_value_error(self) -> None:
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(ConfigurationError, FlowgateError)

    def test_is_frozen(self) -> None:
        config = ExecutorConfig(max_rate_per_second=1)
        with pytest.raises(AttributeError):
            config.max_rate_per_second = 2  # type: ignore[misc]


class TestConfigFromEnv:
    def test_full(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FLOWGATE_MAX_RATE_PER_SECOND", "20")
        monkeypatch.setenv("FLOWGATE_MAX_CONCURRENT_TASKS", "3")
        monkeypatch.setenv("FLOWGATE_TASK_TIMEOUT_SECONDS", "0.5")
        monkeypatch.setenv("FLOWGATE_TIMEOUT_POLICY", "CANCEL")
        config = ExecutorConfig.from_env()
        assert config == ExecutorConfig(
            max_rate_per_second=20.0,
            max_concurrent_tasks=3,
            task_timeout_seconds=0.5,
            timeout_policy=TimeoutPolicy.CANCEL,
        )

    def test_unbounded_keyword(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_MAX_RATE_PER_SECOND", "1")
        monkeypatch.setenv("APP_MAX_CONCURRENT_TASKS", "unbounded")
        assert ExecutorConfig.from_env(prefix="APP_").is_unbounded

    def test_missing_rate(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FLOWGATE_MAX_RATE_PER_SECOND", raising=False)
        with pytest.raises(ConfigurationError, match="MAX_RATE_PER_SECOND"):
            ExecutorConfig.from_env()

    def test_unparsable_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FLOWGATE_MAX_RATE_PER_SECOND", "fast")
        with pytest.raises(ConfigurationError, match="invalid value"):
            ExecutorConfig.from_env()


class TestRecords:
    def test_queued_task_name_defaults_to_qualname(self) -> None:
        queued = QueuedTask(func=_noop)
        assert queued.name == "_noop"
        assert len(queued.id) == 12

    def test_queued_task_explicit_name(self) -> None:
        assert QueuedTask(func=_noop, name="ping").name == "ping"

    def test_outcome_durations(self) -> None:
        outcome = TaskOutcome(
            task_id="abc",
            name="t",
            status=TaskStatus.COMPLETED,
            submitted_at=10.0,
            started_at=12.5,
            finished_at=13.0,
        )
        assert outcome.wait_seconds == pytest.approx(2.5)
        assert outcome.duration_seconds == pytest.approx(0.5)

    def test_timeout_error_message(self) -> None:
        err = TaskTimeoutError("fetch", 0.05)
        assert "fetch" in str(err)
        assert "0.05s" in str(err)
        assert isinstance(err, TimeoutError)
