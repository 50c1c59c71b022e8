"""Sliding window rate limiting for long-running endpoints."""

from backend.app.rate_limit.client_id import get_client_identifier
from backend.app.rate_limit.core import (
    InMemoryRateLimitStore,
    RateLimitStore,
    SlidingWindowRateLimiter,
)
from backend.app.rate_limit.types import RATE_LIMITS, RateLimitConfig, RateLimitDecision

__all__ = [
    "RATE_LIMITS",
    "InMemoryRateLimitStore",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimitStore",
    "SlidingWindowRateLimiter",
    "get_client_identifier",
]
