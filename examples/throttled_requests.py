"""Example: protecting a rate-limited service with flowgate.

A producer enqueues 30 "requests" at once.  The executor starts at most
5 per second, keeps at most 3 in flight, and gives each one second
before releasing its slot.  Every tenth request hangs to show the
timeout path.
"""

import asyncio
import logging
import random

from flowgate.core.events import Event, EventType
from flowgate.core.executor import Executor
from flowgate.core.models import ExecutorConfig, TimeoutPolicy
from flowgate.observability import PrometheusMetrics
from flowgate.observability.logging import configure_logging

configure_logging(log_level="INFO", json_format=False)
log = logging.getLogger(__name__)


# ── Task implementation ──────────────────────────────────────────────


def make_request(n: int):
    async def call_service() -> None:
        if n % 10 == 0:
            await asyncio.sleep(30)  # hangs past the deadline
        await asyncio.sleep(random.uniform(0.1, 0.6))
        if n % 7 == 0:
            raise ConnectionError(f"request {n} was reset")
        log.info("request %d done", n)

    return call_service


# ── Main ─────────────────────────────────────────────────────────────


async def main() -> None:
    metrics = PrometheusMetrics()
    config = ExecutorConfig(
        max_rate_per_second=5,
        max_concurrent_tasks=3,
        task_timeout_seconds=1.0,
        timeout_policy=TimeoutPolicy.CANCEL,
    )

    async with Executor(config, hooks=[metrics.create_hook()]) as executor:
        metrics.bind(executor)

        async def on_timeout(event: Event) -> None:
            log.info("gave up on %s", event.payload["name"])

        executor.event_bus.subscribe(EventType.TASK_TIMED_OUT, on_timeout)

        for n in range(1, 31):
            executor.submit(make_request(n), name=f"request-{n}")

        await executor.wait_idle()

    print(metrics.export())


if __name__ == "__main__":
    asyncio.run(main())
