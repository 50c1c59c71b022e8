"""Shared route dependencies and admission helpers."""

import logging
from collections.abc import Callable, Generator
from functools import partial
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from backend.app.config import MissingOpenAIKeyError, Settings
from backend.app.errors import QuotaExceededError, RateLimitExceededError
from backend.app.metrics.core import record_admission
from backend.app.metrics.registry import MetricsClient
from backend.app.monitor.engines import (
    AnswerEngine,
    build_answer_engines,
    create_openai_client,
)
from backend.app.monitor.sentiment import (
    NeutralSentimentAnalyzer,
    OpenAISentimentAnalyzer,
    SentimentAnalyzer,
)
from backend.app.quota import QuotaGate, QuotaResult
from backend.app.rate_limit import RateLimitConfig, SlidingWindowRateLimiter

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_app_session_factory(request: Request) -> sessionmaker[Session]:
    return request.app.state.session_factory


def get_db_session(request: Request) -> Generator[Session, None, None]:
    """Dependency to get a database session."""
    factory = get_app_session_factory(request)
    session = factory()
    try:
        yield session
    finally:
        session.close()


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.rate_limiter


def get_quota_gate(request: Request) -> QuotaGate:
    return request.app.state.quota_gate


def get_metrics(request: Request) -> MetricsClient:
    return request.app.state.metrics


EngineProvider = Callable[[], list[AnswerEngine]]
SentimentProvider = Callable[[], SentimentAnalyzer]


def answer_engines_for(settings: Settings) -> list[AnswerEngine]:
    """Answer engines for brand monitor checks; empty when no key is configured."""
    try:
        return build_answer_engines(settings)
    except MissingOpenAIKeyError:
        logger.warning("No OpenAI API key configured, no answer engines available")
        return []


def sentiment_analyzer_for(settings: Settings) -> SentimentAnalyzer:
    try:
        client = create_openai_client(settings)
    except MissingOpenAIKeyError:
        return NeutralSentimentAnalyzer()
    return OpenAISentimentAnalyzer(client, settings.openai_model)


def get_answer_engines(
    settings: Settings = Depends(get_app_settings),
) -> EngineProvider:
    """Provider of answer engines.

    Clients are only built when the provider is called, after admission.
    """
    return partial(answer_engines_for, settings)


def get_sentiment_analyzer(
    settings: Settings = Depends(get_app_settings),
) -> SentimentProvider:
    return partial(sentiment_analyzer_for, settings)


def enforce_rate_limit(
    limiter: SlidingWindowRateLimiter,
    key: str,
    config: RateLimitConfig,
    *,
    route: str,
    metrics: MetricsClient | None = None,
) -> None:
    """Consume one slot for `key`.

    Raises:
        RateLimitExceededError: If the window is full
    """
    decision = limiter.check(key, config)
    if not decision.allowed:
        record_admission(route, "rate_limited", client=metrics)
        raise RateLimitExceededError(decision.retry_after_seconds)


async def enforce_quota(
    gate: QuotaGate,
    user_id: UUID,
    *,
    route: str,
    metrics: MetricsClient | None = None,
) -> QuotaResult | None:
    """Check the user's monthly quota.

    A failing lookup is logged and the request proceeds.

    Returns:
        The quota result, or None if it could not be determined

    Raises:
        QuotaExceededError: If the quota is used up and enforcement is on
    """
    try:
        result = await gate.check_quota(user_id)
    except Exception:
        logger.warning(
            "Quota check failed, proceeding without it",
            exc_info=True,
            extra={"route": route, "user_id": str(user_id)},
        )
        return None

    if not result.allowed:
        record_admission(route, "quota_exceeded", client=metrics)
        raise QuotaExceededError(limit=result.limit, plan=result.plan)
    return result
