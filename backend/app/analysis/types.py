"""Content analysis types."""

from typing import Literal

from pydantic import Field

from backend.app.streaming.events import WireModel

AnalysisMode = Literal["url_verification", "text_quality"]


class ContentStats(WireModel):
    char_count: int
    word_count: int
    sentence_count: int
    paragraph_count: int


class ContentCharacteristics(WireModel):
    has_statistics: bool
    has_citations: bool
    has_quotes: bool
    has_structure: bool
    avg_sentence_length: int = Field(description="Mean sentence length in characters")
    unique_words_ratio: int = Field(description="Distinct words as a percentage")


class QueryInfo(WireModel):
    query: str
    type: str


class StrategyScore(WireModel):
    """Score of one GEO strategy (0-100) with improvement suggestions."""

    strategy: str
    score: int
    label: str
    description: str
    suggestions: list[str] = Field(default_factory=list)


class StrategyAnalysis(WireModel):
    scores: list[StrategyScore]
    overall_score: int
    top_strengths: list[StrategyScore]
    top_weaknesses: list[StrategyScore]


class AnalysisMetadata(WireModel):
    provider: str
    model: str
    total_duration: int
    api_calls: int
    timestamp: str


class TextQualityResult(WireModel):
    """Result of a text-quality analysis run."""

    overall_quality: int
    content_stats: ContentStats
    strategy_scores: list[StrategyScore]
    suggestions: list[str]
    topic: str
    metadata: AnalysisMetadata
