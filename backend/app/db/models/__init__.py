"""ORM models for database tables."""

from .analysis import Analysis
from .billing import Plan, Subscription, Usage
from .monitor import BrandMonitor, MonitorCheck, MonitorQuestion
from .status import TERMINAL_STATUSES, RunStatus

__all__ = [
    "Analysis",
    "BrandMonitor",
    "MonitorCheck",
    "MonitorQuestion",
    "Plan",
    "RunStatus",
    "Subscription",
    "TERMINAL_STATUSES",
    "Usage",
]
