"""Tests for the brand monitor check orchestrator and summary aggregation."""

import asyncio
from uuid import uuid4

import pytest

from backend.app.monitor import BrandMonitorCheck, CheckAbortedError, NoEnginesAvailableError
from backend.app.monitor.check import (
    aggregate_summary,
    fallback_queries,
    merge_competitor_mentions,
)
from backend.app.monitor.sentiment import NeutralSentimentAnalyzer
from backend.app.monitor.types import (
    CheckQuery,
    CompetitorBrand,
    CompetitorMention,
    EngineAnswer,
    EngineCheckResult,
    MonitorConfig,
    QueryCheckResult,
    SentimentResult,
)


class FakeEngine:
    """Answer engine returning canned answers per query."""

    def __init__(self, name: str, answers: dict[str, str], default: str = "") -> None:
        self.name = name
        self.answers = answers
        self.default = default
        self.calls: list[str] = []

    async def ask(self, query: str, locale: str) -> EngineAnswer:
        self.calls.append(query)
        return EngineAnswer(
            engine=self.name, answer=self.answers.get(query, self.default), duration=5
        )


class FixedSentiment:
    def __init__(self, sentiment: str) -> None:
        self.sentiment = sentiment
        self.batches: list[list[int]] = []

    async def analyze_batch(self, brand_name, inputs, locale):
        self.batches.append([item.query_index for item in inputs])
        return {
            item.query_index: SentimentResult(
                sentiment=self.sentiment, confidence=0.9, context=item.context
            )
            for item in inputs
        }


def make_monitor(**overrides) -> MonitorConfig:
    fields = {
        "id": uuid4(),
        "name": "Acme watch",
        "brand_names": ["Acme"],
        "competitor_brands": [CompetitorBrand(name="Globex")],
        "industry_keywords": ["crm", "sales"],
        "locale": "en",
    }
    fields.update(overrides)
    return MonitorConfig(**fields)


def engine_result(engine: str, mentioned: bool, position: int = 0, competitors=()) -> EngineCheckResult:
    return EngineCheckResult(
        engine=engine,
        answer="",
        brand_mentioned=mentioned,
        brand_position=position,
        brand_context="Acme ctx" if mentioned else "",
        competitor_mentions=[CompetitorMention(name=n, position=p) for n, p in competitors],
        citations=[],
        duration=1,
    )


def query_result(engines, *, mentioned, position=0, competitors=(), sentiment="neutral"):
    return QueryCheckResult(
        query="q",
        query_type="recommendation",
        engine_results=engines,
        brand_mentioned=mentioned,
        brand_position=position,
        competitor_mentions=[CompetitorMention(name=n, position=p) for n, p in competitors],
        sentiment=sentiment,
    )


@pytest.mark.unit
def test_fallback_queries_use_first_two_keywords():
    queries = fallback_queries(["crm", "sales"])

    assert len(queries) == 8
    assert queries[0] == CheckQuery(query="best crm tools", type="recommendation")
    assert CheckQuery(query="crm vs sales", type="comparison") in queries


@pytest.mark.unit
def test_fallback_queries_without_keywords():
    assert fallback_queries([])[0].query == "best tool tools"


@pytest.mark.unit
def test_merge_competitor_mentions_keeps_best_position():
    merged = merge_competitor_mentions(
        [
            engine_result("a", False, competitors=[("Globex", 0), ("Hooli", 4)]),
            engine_result("b", False, competitors=[("Globex", 2), ("Hooli", 1)]),
        ]
    )
    assert {m.name: m.position for m in merged} == {"Globex": 2, "Hooli": 1}


@pytest.mark.unit
class TestAggregateSummary:
    def test_rates_positions_and_share_of_voice(self):
        results = [
            query_result(
                [engine_result("e1", True, 1), engine_result("e2", False)],
                mentioned=True,
                position=1,
                competitors=[("Globex", 2)],
                sentiment="positive",
            ),
            query_result(
                [engine_result("e1", True, 2), engine_result("e2", True, 4)],
                mentioned=True,
                position=3,
                sentiment="negative",
            ),
            query_result(
                [engine_result("e1", False), engine_result("e2", False)],
                mentioned=False,
                competitors=[("Globex", 1)],
            ),
        ]

        summary = aggregate_summary(results, "Acme", engine_count=2)

        assert summary.total_queries == 3
        assert summary.total_engines == 2
        assert summary.mention_rate == 0.67
        assert summary.avg_position == 2.0
        # Acme: 2 mentions, Globex: 2 mentions
        assert summary.share_of_voice == {"Acme": 0.5, "Globex": 0.5}
        assert summary.sentiment_distribution.positive == 1
        assert summary.sentiment_distribution.negative == 1
        assert summary.sentiment_distribution.neutral == 0
        assert summary.per_engine["e1"].avg_position == 1.5
        assert summary.per_engine["e2"].avg_position == 4.0
        assert summary.per_engine["e2"].mention_rate == pytest.approx(1 / 3)

    def test_empty_results(self):
        summary = aggregate_summary([], "Acme", engine_count=1)

        assert summary.mention_rate == 0
        assert summary.avg_position == 0
        assert summary.share_of_voice == {"Acme": 0}
        assert summary.per_engine == {}

    def test_unmentioned_queries_do_not_count_sentiment(self):
        results = [query_result([engine_result("e1", False)], mentioned=False)]
        summary = aggregate_summary(results, "Acme", engine_count=1)

        assert summary.sentiment_distribution.neutral == 0


ANSWERS = {
    "best crm for startups": "Top picks:\n1. Globex\n2. Acme - simple https://acme.com/pricing",
    "acme vs globex": "Globex is bigger, but Acme is easier to use.",
}


@pytest.mark.unit
@pytest.mark.asyncio
class TestBrandMonitorCheck:
    async def run_check(self, check: BrandMonitorCheck):
        events = []

        async def emit(event):
            events.append(event)

        result = await check.run(emit, asyncio.Event())
        return result, events

    async def test_event_sequence_and_result(self):
        engines = [FakeEngine("e1", ANSWERS), FakeEngine("e2", ANSWERS)]
        questions = [
            CheckQuery(query="best crm for startups", type="recommendation"),
            CheckQuery(query="acme vs globex", type="comparison"),
        ]
        sentiment = FixedSentiment("positive")
        check = BrandMonitorCheck(make_monitor(), questions, engines, sentiment)

        result, events = await self.run_check(check)

        types = [e.type for e in events]
        assert types[0] == "monitor_init"
        assert types[1] == "monitor_queries"
        per_query = [
            "monitor_engine_start",
            "monitor_engine_start",
            "monitor_engine_complete",
            "monitor_engine_complete",
            "monitor_query_complete",
        ]
        assert types[2:12] == per_query * 2
        assert types[12:] == ["monitor_sentiment", "monitor_sentiment"]
        assert events[0].data.total_engines == 2
        assert events[-1].data.processed == events[-1].data.total == 2

        first = result.detail.queries[0]
        assert first.brand_mentioned is True
        assert first.brand_position == 2
        assert first.sentiment == "positive"
        assert first.engine_results[0].citations[0].domain == "acme.com"
        assert [m.name for m in first.competitor_mentions] == ["Globex"]

        assert result.summary.mention_rate == 1.0
        assert result.summary.total_queries == 2
        assert result.summary.sentiment_distribution.positive == 2
        assert sentiment.batches == [[0, 1]]

    async def test_uses_fallback_queries_without_questions(self):
        engine = FakeEngine("e1", {})
        check = BrandMonitorCheck(make_monitor(), [], [engine], NeutralSentimentAnalyzer())

        result, events = await self.run_check(check)

        assert len(engine.calls) == 8
        assert engine.calls[0] == "best crm tools"
        assert result.summary.mention_rate == 0
        # Nothing mentioned: no sentiment stage
        assert "monitor_sentiment" not in [e.type for e in events]

    async def test_requires_an_engine(self):
        check = BrandMonitorCheck(make_monitor(), [], [], NeutralSentimentAnalyzer())

        with pytest.raises(NoEnginesAvailableError):
            await self.run_check(check)

    async def test_abort_between_queries(self):
        abort = asyncio.Event()
        engine = FakeEngine("e1", ANSWERS)

        async def emit(event):
            if event.type == "monitor_query_complete":
                abort.set()

        questions = [CheckQuery(query=q, type="recommendation") for q in ANSWERS]
        check = BrandMonitorCheck(make_monitor(), questions, [engine], NeutralSentimentAnalyzer())

        with pytest.raises(CheckAbortedError):
            await check.run(emit, abort)
        assert engine.calls == ["best crm for startups"]
