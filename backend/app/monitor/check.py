"""Brand monitor check orchestrator.

For every question the configured answer engines are queried concurrently;
their answers are scanned for brand and competitor mentions, list positions
and cited URLs. Mentioned contexts then go through one batch sentiment call,
and the per-query results are aggregated into a CheckSummary.
"""

import asyncio
import logging

from backend.app.monitor.detection import (
    deduplicate_citations,
    detect_brand_mention,
    detect_competitor_mentions,
    extract_mention_context,
    parse_citations_from_text,
)
from backend.app.monitor.engines import AnswerEngine
from backend.app.monitor.events import (
    MonitorEngineCompleteData,
    MonitorEngineCompleteEvent,
    MonitorEngineStartData,
    MonitorEngineStartEvent,
    MonitorInitData,
    MonitorInitEvent,
    MonitorQueriesData,
    MonitorQueriesEvent,
    MonitorQueryCompleteData,
    MonitorQueryCompleteEvent,
    MonitorSentimentData,
    MonitorSentimentEvent,
)
from backend.app.monitor.sentiment import SentimentAnalyzer
from backend.app.monitor.types import (
    CheckDetail,
    CheckQuery,
    CheckResult,
    CheckSummary,
    CompetitorMention,
    EngineCheckResult,
    EngineStats,
    MonitorConfig,
    QueryCheckResult,
    SentimentDistribution,
    SentimentInput,
)
from backend.app.streaming.session import EventSink
from backend.app.utils.rounding import round_half_up, round_to

logger = logging.getLogger(__name__)


class CheckAbortedError(Exception):
    """The client went away before the check finished."""


class NoEnginesAvailableError(RuntimeError):
    """No answer engine is configured."""


def fallback_queries(industry_keywords: list[str]) -> list[CheckQuery]:
    """Template buyer-intent queries used when the monitor has no enabled questions."""
    kw = industry_keywords[0] if industry_keywords else "tool"
    kw2 = industry_keywords[1] if len(industry_keywords) > 1 else kw
    templates = [
        (f"best {kw} tools", "recommendation"),
        (f"top {kw} recommendations", "recommendation"),
        (f"{kw} vs {kw2}", "comparison"),
        (f"{kw} tool comparison", "comparison"),
        (f"{kw} tools ranking", "ranking"),
        (f"top 10 {kw}", "ranking"),
        (f"is {kw} good", "review"),
        (f"{kw} review", "review"),
    ]
    return [CheckQuery(query=query, type=query_type) for query, query_type in templates]


def merge_competitor_mentions(
    engine_results: list[EngineCheckResult],
) -> list[CompetitorMention]:
    """Union of competitors across engines, keeping each one's best list position."""
    best: dict[str, int] = {}
    for result in engine_results:
        for mention in result.competitor_mentions:
            current = best.get(mention.name)
            if current is None or (
                mention.position > 0 and (current == 0 or mention.position < current)
            ):
                best[mention.name] = mention.position
    return [CompetitorMention(name=name, position=position) for name, position in best.items()]


def aggregate_summary(
    query_results: list[QueryCheckResult], brand_name: str, engine_count: int
) -> CheckSummary:
    """Aggregate per-query results.

    Args:
        query_results: Results in query order
        brand_name: Primary brand name, used as the brand's share-of-voice key
        engine_count: Number of engines queried

    Returns:
        CheckSummary with mention rate and share of voice rounded to two
        decimals, and average positions rounded to one.
    """
    total_queries = len(query_results)
    mentioned = sum(1 for q in query_results if q.brand_mentioned)
    mention_rate = mentioned / total_queries if total_queries else 0.0

    positioned = [q.brand_position for q in query_results if q.brand_position > 0]
    avg_position = sum(positioned) / len(positioned) if positioned else 0.0

    voice: dict[str, int] = {brand_name: mentioned}
    for q in query_results:
        for mention in q.competitor_mentions:
            voice[mention.name] = voice.get(mention.name, 0) + 1
    total_voice = sum(voice.values())
    share_of_voice = {
        name: round_to(count / total_voice, 2) if total_voice else 0.0
        for name, count in voice.items()
    }

    distribution = SentimentDistribution()
    for q in query_results:
        if q.brand_mentioned:
            setattr(distribution, q.sentiment, getattr(distribution, q.sentiment) + 1)

    engines: list[str] = []
    for q in query_results:
        for result in q.engine_results:
            if result.engine not in engines:
                engines.append(result.engine)

    per_engine = {}
    for engine in engines:
        engine_mentioned = sum(
            1
            for q in query_results
            if any(r.engine == engine and r.brand_mentioned for r in q.engine_results)
        )
        engine_positions = [
            r.brand_position
            for q in query_results
            for r in q.engine_results
            if r.engine == engine and r.brand_position > 0
        ]
        engine_avg = (
            sum(engine_positions) / len(engine_positions) if engine_positions else 0.0
        )
        per_engine[engine] = EngineStats(
            mention_rate=engine_mentioned / total_queries if total_queries else 0.0,
            avg_position=round_to(engine_avg, 1),
        )

    return CheckSummary(
        mention_rate=round_to(mention_rate, 2),
        avg_position=round_to(avg_position, 1),
        share_of_voice=share_of_voice,
        sentiment_distribution=distribution,
        per_engine=per_engine,
        total_queries=total_queries,
        total_engines=engine_count,
    )


class BrandMonitorCheck:
    """Runs one check of a brand monitor and reports progress through the sink."""

    def __init__(
        self,
        monitor: MonitorConfig,
        questions: list[CheckQuery],
        engines: list[AnswerEngine],
        sentiment: SentimentAnalyzer,
    ) -> None:
        """Initialize the check.

        Args:
            monitor: Monitor configuration snapshot
            questions: Enabled questions; empty means keyword templates are used
            engines: Answer engines to query
            sentiment: Batch sentiment analyzer
        """
        self.monitor = monitor
        self.questions = questions
        self.engines = engines
        self.sentiment = sentiment

    async def run(self, emit: EventSink, abort: asyncio.Event) -> CheckResult:
        """Run the check.

        Raises:
            NoEnginesAvailableError: If no engine is configured
            CheckAbortedError: If the abort signal fires between stages
        """
        if not self.engines:
            raise NoEnginesAvailableError("No search engines available")

        await emit(
            MonitorInitEvent(
                data=MonitorInitData(
                    monitor_id=str(self.monitor.id),
                    monitor_name=self.monitor.name,
                    brand_names=self.monitor.brand_names,
                    total_engines=len(self.engines),
                )
            )
        )
        self._check_abort(abort)

        queries = self.questions or fallback_queries(self.monitor.industry_keywords)
        await emit(MonitorQueriesEvent(data=MonitorQueriesData(queries=queries)))
        self._check_abort(abort)

        query_results = []
        for index, query in enumerate(queries):
            self._check_abort(abort)
            query_results.append(await self._run_query(index, query, emit))

        self._check_abort(abort)
        await self._apply_sentiment(query_results, emit)

        summary = aggregate_summary(
            query_results, self.monitor.primary_brand, len(self.engines)
        )
        return CheckResult(summary=summary, detail=CheckDetail(queries=query_results))

    async def _run_query(
        self, index: int, query: CheckQuery, emit: EventSink
    ) -> QueryCheckResult:
        for engine in self.engines:
            await emit(
                MonitorEngineStartEvent(
                    data=MonitorEngineStartData(query_index=index, engine=engine.name)
                )
            )

        engine_results = list(
            await asyncio.gather(
                *(self._run_engine(index, query, engine, emit) for engine in self.engines)
            )
        )

        mentioned = [r for r in engine_results if r.brand_mentioned]
        brand_position = (
            round_half_up(sum(r.brand_position for r in mentioned) / len(mentioned))
            if mentioned
            else 0
        )
        competitors = merge_competitor_mentions(engine_results)
        result = QueryCheckResult(
            query=query.query,
            query_type=query.type,
            engine_results=engine_results,
            brand_mentioned=bool(mentioned),
            brand_position=brand_position,
            competitor_mentions=competitors,
            sentiment="neutral",
            sentiment_context=next(
                (r.brand_context for r in engine_results if r.brand_context), ""
            ),
        )

        await emit(
            MonitorQueryCompleteEvent(
                data=MonitorQueryCompleteData(
                    query_index=index,
                    query=query.query,
                    brand_mentioned=result.brand_mentioned,
                    brand_position=brand_position,
                    competitor_count=len(competitors),
                )
            )
        )
        return result

    async def _run_engine(
        self, index: int, query: CheckQuery, engine: AnswerEngine, emit: EventSink
    ) -> EngineCheckResult:
        answer = await engine.ask(query.query, self.monitor.locale)
        brand_names = self.monitor.brand_names

        mention = detect_brand_mention(answer.answer, brand_names)
        context = (
            mention.context
            if mention.found
            else extract_mention_context(answer.answer, brand_names)
        )
        result = EngineCheckResult(
            engine=engine.name,
            answer=answer.answer,
            brand_mentioned=mention.found,
            brand_position=mention.position,
            brand_context=context,
            competitor_mentions=detect_competitor_mentions(
                answer.answer, self.monitor.competitor_brands
            ),
            citations=deduplicate_citations(parse_citations_from_text(answer.answer)),
            duration=answer.duration,
        )

        await emit(
            MonitorEngineCompleteEvent(
                data=MonitorEngineCompleteData(
                    query_index=index,
                    engine=engine.name,
                    brand_mentioned=mention.found,
                    brand_position=mention.position,
                    duration=answer.duration,
                )
            )
        )
        return result

    async def _apply_sentiment(
        self, query_results: list[QueryCheckResult], emit: EventSink
    ) -> None:
        inputs = [
            SentimentInput(query_index=index, context=q.sentiment_context)
            for index, q in enumerate(query_results)
            if q.brand_mentioned and q.sentiment_context
        ]
        if not inputs:
            return

        await emit(
            MonitorSentimentEvent(data=MonitorSentimentData(processed=0, total=len(inputs)))
        )
        results = await self.sentiment.analyze_batch(
            self.monitor.primary_brand, inputs, self.monitor.locale
        )
        for index, sentiment in results.items():
            if 0 <= index < len(query_results):
                query_results[index].sentiment = sentiment.sentiment

        await emit(
            MonitorSentimentEvent(
                data=MonitorSentimentData(processed=len(inputs), total=len(inputs))
            )
        )
        logger.debug(
            "monitor_sentiment_applied",
            extra={"monitor_id": str(self.monitor.id), "analyzed": len(inputs)},
        )

    @staticmethod
    def _check_abort(abort: asyncio.Event) -> None:
        if abort.is_set():
            raise CheckAbortedError("Check aborted")
