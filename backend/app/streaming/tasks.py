"""Fire-and-forget work with failure logging."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

# Strong references so pending tasks are not garbage collected
_detached_tasks: set[asyncio.Task[Any]] = set()


def _on_done(task: asyncio.Task[Any]) -> None:
    _detached_tasks.discard(task)
    if task.cancelled():
        logger.warning("Detached task cancelled", extra={"task": task.get_name()})
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Detached task failed",
            exc_info=(type(exc), exc, exc.__traceback__),
            extra={"task": task.get_name()},
        )


def spawn_detached(coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
    """Run a coroutine without awaiting it.

    The task is tracked until it finishes and any exception it raises is
    logged instead of being lost.

    Args:
        coro: Coroutine to run
        name: Task name used in logs

    Returns:
        The scheduled task

    Example:
        spawn_detached(
            run_in_threadpool(quota_gate.increment_usage, user.id),
            name="usage-increment",
        )
    """
    task = asyncio.get_running_loop().create_task(coro, name=name)
    _detached_tasks.add(task)
    task.add_done_callback(_on_done)
    return task


def pending_detached() -> int:
    """Number of detached tasks still running."""
    return len(_detached_tasks)


async def drain_detached(timeout: float = 5.0) -> None:
    """Wait for running detached tasks (used on shutdown and in tests)."""
    if not _detached_tasks:
        return
    await asyncio.wait(set(_detached_tasks), timeout=timeout)
