"""Decorators for submitting work to an executor.

Example:
    from flowgate.decorators import throttled

    executor = Executor(ExecutorConfig(max_rate_per_second=5))

    @throttled(executor)
    async def notify(user_id: str, message: str) -> None:
        await client.post("/notify", json={"user": user_id, "text": message})

    # Enqueues the call and returns immediately
    notify("u-42", "hello")
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from flowgate.core.executor import Executor


def throttled(
    executor: Executor, name: str | None = None
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., None]]:
    """Route every call of the decorated coroutine function through *executor*.

    Args:
        executor: Executor that will run the calls
        name: Task name reported in logs and events (defaults to the
            function's qualified name)

    Returns:
        Decorator producing a fire-and-forget wrapper.  The undecorated
        function stays reachable as ``__wrapped__``.
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., None]:
        task_name = name or func.__qualname__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> None:
            executor.submit(functools.partial(func, *args, **kwargs), name=task_name)

        return wrapper

    return decorator
