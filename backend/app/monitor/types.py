"""Brand monitor check types."""

from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from backend.app.streaming.events import WireModel

Sentiment = Literal["positive", "neutral", "negative"]


class CompetitorBrand(WireModel):
    name: str
    aliases: list[str] = Field(default_factory=list)


class MonitorConfig(WireModel):
    """Snapshot of a brand monitor taken before the check starts."""

    id: UUID
    name: str
    brand_names: list[str]
    competitor_brands: list[CompetitorBrand] = Field(default_factory=list)
    industry_keywords: list[str] = Field(default_factory=list)
    brand_website: str = ""
    brand_description: str = ""
    locale: str = "zh"

    @property
    def primary_brand(self) -> str:
        """First brand name, falling back to the monitor name."""
        return self.brand_names[0] if self.brand_names else self.name

    @classmethod
    def from_record(cls, monitor: Any) -> "MonitorConfig":
        """Build from a BrandMonitor row."""
        return cls(
            id=monitor.id,
            name=monitor.name,
            brand_names=list(monitor.brand_names or []),
            competitor_brands=[
                CompetitorBrand.model_validate(c) for c in monitor.competitor_brands or []
            ],
            industry_keywords=list(monitor.industry_keywords or []),
            brand_website=monitor.brand_website or "",
            brand_description=monitor.brand_description or "",
            locale=monitor.locale or "zh",
        )


class CheckQuery(WireModel):
    """A question asked to every engine."""

    query: str
    type: str


class BrandMention(WireModel):
    found: bool
    position: int = Field(description="1-based position in a list, 0 if not in a list")
    context: str = Field(description="Text surrounding the mention")
    matched_name: str


class CompetitorMention(WireModel):
    name: str
    position: int


class Citation(WireModel):
    url: str
    title: str | None = None
    domain: str


class EngineAnswer(WireModel):
    """Raw answer of one engine to one query."""

    engine: str
    answer: str
    duration: int


class EngineCheckResult(WireModel):
    engine: str
    answer: str
    brand_mentioned: bool
    brand_position: int
    brand_context: str
    competitor_mentions: list[CompetitorMention]
    citations: list[Citation]
    duration: int


class QueryCheckResult(WireModel):
    query: str
    query_type: str
    engine_results: list[EngineCheckResult]
    brand_mentioned: bool
    brand_position: int
    competitor_mentions: list[CompetitorMention]
    sentiment: Sentiment = "neutral"
    sentiment_context: str = ""


class SentimentInput(WireModel):
    query_index: int
    context: str


class SentimentResult(WireModel):
    sentiment: Sentiment
    confidence: float
    context: str


class EngineStats(WireModel):
    mention_rate: float
    avg_position: float


class SentimentDistribution(WireModel):
    positive: int = 0
    neutral: int = 0
    negative: int = 0


class CheckSummary(WireModel):
    mention_rate: float
    avg_position: float
    share_of_voice: dict[str, float]
    sentiment_distribution: SentimentDistribution
    per_engine: dict[str, EngineStats]
    total_queries: int
    total_engines: int


class CheckDetail(WireModel):
    queries: list[QueryCheckResult]


class CheckResult(WireModel):
    summary: CheckSummary
    detail: CheckDetail
