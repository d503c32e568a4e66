"""Ops route definitions, separated from the app factory for testability."""

from __future__ import annotations

import dataclasses
import time
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import PlainTextResponse

from flowgate import __version__
from flowgate.api.schemas import HealthResponse, StatsResponse

if TYPE_CHECKING:
    from flowgate.core.executor import Executor
    from flowgate.observability import PrometheusMetrics

router = APIRouter()

# Injected by the app factory via ``configure``
_executor: Executor | None = None
_metrics: PrometheusMetrics | None = None
_start_time: float = time.monotonic()


def configure(executor: Executor, metrics: PrometheusMetrics | None = None) -> None:
    """Wire the executor and optional metrics collector into the router (poor-man's DI)."""
    global _executor, _metrics, _start_time
    _executor = executor
    _metrics = metrics
    _start_time = time.monotonic()


def _get_executor() -> Executor:
    if _executor is None:
        raise RuntimeError("Executor not configured")
    return _executor


@router.get("/health", response_model=HealthResponse, tags=["ops"])
async def health() -> HealthResponse:
    executor = _get_executor()
    return HealthResponse(
        status="stopped" if executor.is_stopped else "healthy",
        version=__version__,
        uptime_seconds=round(time.monotonic() - _start_time, 2),
    )


@router.get("/stats", response_model=StatsResponse, tags=["ops"])
async def stats() -> StatsResponse:
    executor = _get_executor()
    config = executor.config
    return StatsResponse(
        **dataclasses.asdict(executor.stats()),
        max_rate_per_second=config.max_rate_per_second,
        task_timeout_seconds=config.task_timeout_seconds,
        timeout_policy=config.timeout_policy.value,
    )


@router.get("/metrics", response_class=PlainTextResponse, tags=["ops"])
async def metrics() -> PlainTextResponse:
    if _metrics is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Metrics not enabled")
    return PlainTextResponse(_metrics.export())
