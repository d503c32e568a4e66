"""FastAPI application factory.

Wraps an existing :class:`Executor` with ops endpoints.  The app's
lifespan starts the executor on startup and shuts it down (waiting for
in-flight tasks) on shutdown.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

from fastapi import FastAPI

from flowgate import __version__
from flowgate.api import routes

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from flowgate.core.executor import Executor
    from flowgate.observability import PrometheusMetrics


def create_app(executor: Executor, metrics: PrometheusMetrics | None = None) -> FastAPI:
    """Build the configured FastAPI instance around *executor*."""

    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        executor.start()
        try:
            yield
        finally:
            await executor.shutdown()

    app = FastAPI(
        title="flowgate — Throttled Task Executor",
        description="Health, counters, and Prometheus metrics for a flowgate executor.",
        version=__version__,
        lifespan=lifespan,
    )

    if metrics is not None:
        metrics.bind(executor)
    routes.configure(executor, metrics)
    app.include_router(routes.router)

    return app
