"""SSE events of the content analysis stream."""

from typing import Any, Literal

from backend.app.analysis.types import (
    AnalysisMetadata,
    AnalysisMode,
    ContentCharacteristics,
    ContentStats,
    QueryInfo,
    StrategyScore,
)
from backend.app.streaming.events import (
    CompletionEvent,
    ErrorData,
    ErrorEvent,
    ProgressEvent,
    WireModel,
)

STREAM_ERROR = "STREAM_ERROR"


class InitData(WireModel):
    mode: AnalysisMode
    content_stats: ContentStats
    estimated_steps: int
    characteristics: ContentCharacteristics | None = None


class InitEvent(ProgressEvent):
    type: Literal["init"] = "init"
    data: InitData


class QueriesData(WireModel):
    topic: str
    queries: list[QueryInfo]


class QueriesEvent(ProgressEvent):
    type: Literal["queries"] = "queries"
    data: QueriesData


class QueryStartData(WireModel):
    query_index: int
    query: str
    query_type: str


class QueryStartEvent(ProgressEvent):
    type: Literal["query_start"] = "query_start"
    data: QueryStartData


class QueryCompleteData(WireModel):
    query_index: int
    result: dict[str, Any]


class QueryCompleteEvent(ProgressEvent):
    type: Literal["query_complete"] = "query_complete"
    data: QueryCompleteData


class QualityCompleteData(WireModel):
    analysis_id: str | None
    overall_quality: int
    content_stats: ContentStats
    strategy_scores: list[StrategyScore]
    suggestions: list[str]
    topic: str
    metadata: AnalysisMetadata
    duration: int


class QualityCompleteEvent(CompletionEvent):
    type: Literal["quality_complete"] = "quality_complete"
    data: QualityCompleteData


class AnalysisErrorEvent(ErrorEvent):
    type: Literal["error"] = "error"

    @classmethod
    def from_message(cls, message: str) -> "AnalysisErrorEvent":
        return cls(data=ErrorData(message=message, code=STREAM_ERROR))
