"""Brand visibility checks against AI answer engines."""

from backend.app.monitor.check import (
    BrandMonitorCheck,
    CheckAbortedError,
    NoEnginesAvailableError,
    aggregate_summary,
)
from backend.app.monitor.engines import AnswerEngine, OpenAIAnswerEngine, build_answer_engines
from backend.app.monitor.sentiment import (
    NeutralSentimentAnalyzer,
    OpenAISentimentAnalyzer,
    SentimentAnalyzer,
)
from backend.app.monitor.types import CheckQuery, CheckResult, MonitorConfig

__all__ = [
    "AnswerEngine",
    "BrandMonitorCheck",
    "CheckAbortedError",
    "CheckQuery",
    "CheckResult",
    "MonitorConfig",
    "NeutralSentimentAnalyzer",
    "NoEnginesAvailableError",
    "OpenAIAnswerEngine",
    "OpenAISentimentAnalyzer",
    "SentimentAnalyzer",
    "aggregate_summary",
    "build_answer_engines",
]
