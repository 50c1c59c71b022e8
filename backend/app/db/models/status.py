"""Lifecycle status shared by analysis and check records."""

from enum import Enum


class RunStatus(str, Enum):
    """Record lifecycle: running -> completed | failed | aborted."""

    running = "running"
    completed = "completed"
    failed = "failed"
    aborted = "aborted"


TERMINAL_STATUSES = frozenset(
    {RunStatus.completed.value, RunStatus.failed.value, RunStatus.aborted.value}
)
