"""Quota types."""

from pydantic import BaseModel, Field

# Plan limit sentinel meaning "no ceiling"
UNLIMITED = -1

DEFAULT_PLAN = "free"


class QuotaResult(BaseModel):
    """Outcome of a monthly quota check."""

    allowed: bool = Field(description="Whether the user may start another analysis")
    remaining: int = Field(description="Analyses left this period (-1 = unlimited)")
    limit: int = Field(description="Plan analysis limit (-1 = unlimited)")
    plan: str = Field(description="Active plan id")
