"""SSE events of the brand monitor check stream."""

from typing import Literal

from backend.app.monitor.types import CheckDetail, CheckQuery, CheckSummary
from backend.app.streaming.events import (
    CompletionEvent,
    ErrorData,
    ErrorEvent,
    ProgressEvent,
    WireModel,
)

CHECK_ERROR = "CHECK_ERROR"


class MonitorInitData(WireModel):
    monitor_id: str
    monitor_name: str
    brand_names: list[str]
    total_engines: int


class MonitorInitEvent(ProgressEvent):
    type: Literal["monitor_init"] = "monitor_init"
    data: MonitorInitData


class MonitorQueriesData(WireModel):
    queries: list[CheckQuery]


class MonitorQueriesEvent(ProgressEvent):
    type: Literal["monitor_queries"] = "monitor_queries"
    data: MonitorQueriesData


class MonitorEngineStartData(WireModel):
    query_index: int
    engine: str


class MonitorEngineStartEvent(ProgressEvent):
    type: Literal["monitor_engine_start"] = "monitor_engine_start"
    data: MonitorEngineStartData


class MonitorEngineCompleteData(WireModel):
    query_index: int
    engine: str
    brand_mentioned: bool
    brand_position: int
    duration: int


class MonitorEngineCompleteEvent(ProgressEvent):
    type: Literal["monitor_engine_complete"] = "monitor_engine_complete"
    data: MonitorEngineCompleteData


class MonitorQueryCompleteData(WireModel):
    query_index: int
    query: str
    brand_mentioned: bool
    brand_position: int
    competitor_count: int


class MonitorQueryCompleteEvent(ProgressEvent):
    type: Literal["monitor_query_complete"] = "monitor_query_complete"
    data: MonitorQueryCompleteData


class MonitorSentimentData(WireModel):
    processed: int
    total: int


class MonitorSentimentEvent(ProgressEvent):
    type: Literal["monitor_sentiment"] = "monitor_sentiment"
    data: MonitorSentimentData


class MonitorCompleteData(WireModel):
    check_id: str
    summary: CheckSummary
    detail: CheckDetail
    duration: int


class MonitorCompleteEvent(CompletionEvent):
    type: Literal["monitor_complete"] = "monitor_complete"
    data: MonitorCompleteData


class MonitorErrorEvent(ErrorEvent):
    type: Literal["monitor_error"] = "monitor_error"

    @classmethod
    def from_message(cls, message: str) -> "MonitorErrorEvent":
        return cls(data=ErrorData(message=message, code=CHECK_ERROR))
