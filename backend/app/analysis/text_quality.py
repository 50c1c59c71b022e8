"""Text-quality analysis orchestrator.

Local strategy analysis only: content statistics, characteristics and the
nine GEO strategy scores. No answer engines are queried in this mode.
"""

import asyncio
import logging
import re
import time

from backend.app.analysis.content_stats import (
    analyze_content_characteristics,
    calculate_content_stats,
)
from backend.app.analysis.events import InitData, InitEvent, QueriesData, QueriesEvent
from backend.app.analysis.strategies import analyze_geo_strategies
from backend.app.analysis.types import AnalysisMetadata, StrategyScore, TextQualityResult
from backend.app.streaming.events import utc_timestamp
from backend.app.streaming.session import EventSink

logger = logging.getLogger(__name__)

TOPIC_MAX_CHARS = 60

_HEADING = re.compile(r"^#{1,6}\s+(.+)$", re.MULTILINE)
_FIRST_SENTENCE = re.compile(r"^\s*(.+?)(?:[.!?。！？\n]|$)", re.DOTALL)


class AnalysisAbortedError(Exception):
    """The client went away before the analysis finished."""


def extract_topic(content: str) -> str:
    """Derive a short topic: the first markdown heading, else the first sentence."""
    match = _HEADING.search(content) or _FIRST_SENTENCE.search(content)
    topic = match.group(1).strip() if match else ""
    if len(topic) > TOPIC_MAX_CHARS:
        topic = topic[:TOPIC_MAX_CHARS].rstrip() + "…"
    return topic


def build_suggestions(weaknesses: list[StrategyScore]) -> list[str]:
    """Markdown suggestion lines for the weakest strategies."""
    lines = ["**Optimization Suggestions**", ""]
    for weakness in weaknesses:
        if weakness.suggestions:
            lines.append(f"- **{weakness.label}**: {'; '.join(weakness.suggestions)}")
    return lines


class TextQualityOrchestrator:
    """Scores one piece of content and reports progress through the sink."""

    def __init__(self, content: str, locale: str = "zh") -> None:
        self.content = content
        self.locale = locale

    async def run(self, emit: EventSink, abort: asyncio.Event) -> TextQualityResult:
        """Run the analysis.

        Args:
            emit: Async sink for progress events
            abort: Set when the client disconnects

        Returns:
            TextQualityResult

        Raises:
            AnalysisAbortedError: If the abort signal fires between stages
        """
        started = time.monotonic()

        content_stats = calculate_content_stats(self.content)
        characteristics = analyze_content_characteristics(self.content)
        await emit(
            InitEvent(
                data=InitData(
                    mode="text_quality",
                    content_stats=content_stats,
                    estimated_steps=2,
                    characteristics=characteristics,
                )
            )
        )
        self._check_abort(abort)

        topic = extract_topic(self.content)
        await emit(QueriesEvent(data=QueriesData(topic=topic, queries=[])))
        self._check_abort(abort)

        # Regex-heavy scoring runs off the event loop
        analysis = await asyncio.to_thread(analyze_geo_strategies, self.content)
        self._check_abort(abort)

        total_duration = int((time.monotonic() - started) * 1000)
        logger.debug(
            "text_quality_scored",
            extra={"overall": analysis.overall_score, "duration_ms": total_duration},
        )
        return TextQualityResult(
            overall_quality=analysis.overall_score,
            content_stats=content_stats,
            strategy_scores=analysis.scores,
            suggestions=build_suggestions(analysis.top_weaknesses),
            topic=topic,
            metadata=AnalysisMetadata(
                provider="local",
                model="strategy-analyzer",
                total_duration=total_duration,
                api_calls=0,
                timestamp=utc_timestamp(),
            ),
        )

    @staticmethod
    def _check_abort(abort: asyncio.Event) -> None:
        if abort.is_set():
            raise AnalysisAbortedError("Analysis aborted")
