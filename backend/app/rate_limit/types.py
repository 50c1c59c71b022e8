"""Rate limiting types."""

from pydantic import BaseModel, Field


class RateLimitConfig(BaseModel):
    """Sliding window limit applied to one route."""

    limit: int = Field(gt=0, description="Maximum requests allowed within the window")
    window_ms: int = Field(gt=0, description="Trailing window length in milliseconds")


class RateLimitDecision(BaseModel):
    """Result of a rate limit check."""

    allowed: bool = Field(description="Whether the request is allowed")
    retry_after_seconds: int = Field(
        default=0, description="Seconds until the oldest request leaves the window"
    )
    remaining: int = Field(description="Number of requests remaining in window")


# Pre-configured limits for the long-running endpoints
RATE_LIMITS: dict[str, RateLimitConfig] = {
    "analyze": RateLimitConfig(limit=5, window_ms=60 * 1000),
    "optimize": RateLimitConfig(limit=10, window_ms=60 * 1000),
    "monitor_run": RateLimitConfig(limit=3, window_ms=60 * 1000),
}
