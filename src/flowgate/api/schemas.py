"""Pydantic schemas for the ops endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    uptime_seconds: float


class StatsResponse(BaseModel):
    """Executor counters as returned by ``GET /stats``."""

    queued: int = Field(..., ge=0)
    in_flight: int = Field(..., ge=0)
    max_concurrent_tasks: int | None = None
    submitted: int = Field(..., ge=0)
    admitted: int = Field(..., ge=0)
    completed: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    timed_out: int = Field(..., ge=0)
    abandoned_running: int = Field(..., ge=0)
    is_running: bool
    is_stopped: bool
    max_rate_per_second: float = Field(..., gt=0)
    task_timeout_seconds: float = Field(..., gt=0)
    timeout_policy: str
