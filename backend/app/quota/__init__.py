"""Monthly usage quota."""

from backend.app.quota.gate import QuotaGate, current_period
from backend.app.quota.types import DEFAULT_PLAN, UNLIMITED, QuotaResult

__all__ = ["DEFAULT_PLAN", "QuotaGate", "QuotaResult", "UNLIMITED", "current_period"]
