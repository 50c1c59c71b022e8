"""Content analysis streaming endpoints."""

import logging
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sse_starlette.sse import EventSourceResponse
from starlette.concurrency import run_in_threadpool

from backend.app.analysis import TextQualityOrchestrator, TextQualityResult
from backend.app.analysis.events import (
    AnalysisErrorEvent,
    QualityCompleteData,
    QualityCompleteEvent,
)
from backend.app.api.auth import CurrentUser, get_optional_user
from backend.app.api.deps import (
    enforce_quota,
    enforce_rate_limit,
    get_app_session_factory,
    get_app_settings,
    get_metrics,
    get_quota_gate,
    get_rate_limiter,
)
from backend.app.config import Settings
from backend.app.db.records import complete_analysis, create_analysis, fail_analysis
from backend.app.errors import ValidationFailedError
from backend.app.metrics.core import record_admission
from backend.app.metrics.registry import MetricsClient
from backend.app.quota import QuotaGate
from backend.app.rate_limit import (
    RATE_LIMITS,
    SlidingWindowRateLimiter,
    get_client_identifier,
)
from backend.app.streaming import (
    SessionFinalizer,
    SSEEvent,
    SSESession,
    WireModel,
    build_sse_response,
    spawn_detached,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analyze-content", tags=["analysis"])

ROUTE = "analyze"


class AnalyzeContentRequest(WireModel):
    """Analysis request payload."""

    content: str = ""
    locale: str = "zh"
    input_type: Literal["text", "url"] = "text"


def normalize_locale(locale: str | None) -> str:
    return "en" if locale == "en" else "zh"


def validate_content(content: str, input_type: str, settings: Settings) -> str:
    """Trim and check the submitted content.

    Args:
        content: Raw content from the request
        input_type: "text" or "url"
        settings: Length limits

    Returns:
        The trimmed content

    Raises:
        ValidationFailedError: If the content is missing, out of bounds or
            the input type is not supported
    """
    if input_type == "url":
        raise ValidationFailedError("URL verification is not supported")

    content = content.strip()
    if not content:
        raise ValidationFailedError("content is required")
    if len(content) < settings.content_min_length:
        raise ValidationFailedError(
            f"Content too short (minimum {settings.content_min_length} characters)"
        )
    if len(content) > settings.content_max_length:
        raise ValidationFailedError(
            f"Content too long (maximum {settings.content_max_length} characters)"
        )
    return content


class AnalysisFinalizer(SessionFinalizer[TextQualityResult]):
    """Writes the terminal state of an analysis record, when there is one."""

    def __init__(
        self, session_factory: sessionmaker[Session], analysis_id: UUID | None
    ) -> None:
        self.session_factory = session_factory
        self.analysis_id = analysis_id

    async def persist_success(self, result: TextQualityResult, duration_ms: int) -> None:
        if self.analysis_id is None:
            return
        await run_in_threadpool(self._complete, result, duration_ms)

    async def persist_failure(self, error: BaseException, duration_ms: int) -> None:
        if self.analysis_id is None:
            return
        await run_in_threadpool(self._fail)

    def _complete(self, result: TextQualityResult, duration_ms: int) -> None:
        with self.session_factory() as session:
            complete_analysis(
                session,
                self.analysis_id,
                score=result.overall_quality,
                results=result.model_dump(by_alias=True, mode="json"),
                duration=duration_ms,
            )

    def _fail(self) -> None:
        with self.session_factory() as session:
            fail_analysis(session, self.analysis_id)

    def completion_event(self, result: TextQualityResult, duration_ms: int) -> SSEEvent:
        return QualityCompleteEvent(
            data=QualityCompleteData(
                analysis_id=str(self.analysis_id) if self.analysis_id else None,
                overall_quality=result.overall_quality,
                content_stats=result.content_stats,
                strategy_scores=result.strategy_scores,
                suggestions=result.suggestions,
                topic=result.topic,
                metadata=result.metadata,
                duration=duration_ms,
            )
        )

    def error_event(self, error: BaseException) -> SSEEvent:
        return AnalysisErrorEvent.from_message(str(error) or "Analysis failed")


def _create_record(
    session_factory: sessionmaker[Session], user_id: UUID, content: str, locale: str
) -> UUID:
    with session_factory() as session:
        return create_analysis(session, user_id, content=content, locale=locale).id


def _open_stream(
    content: str,
    locale: str,
    finalizer: AnalysisFinalizer,
    settings: Settings,
    metrics: MetricsClient,
) -> EventSourceResponse:
    orchestrator = TextQualityOrchestrator(content, locale)
    session = SSESession(
        orchestrator.run,
        finalizer,
        deadline_s=settings.sse_deadline_s,
        kind="analysis",
        metrics=metrics,
    )
    return build_sse_response(session, settings)


@router.post("/stream")
async def stream_analysis(
    payload: AnalyzeContentRequest,
    request: Request,
    user: CurrentUser | None = Depends(get_optional_user),
    settings: Settings = Depends(get_app_settings),
    session_factory: sessionmaker[Session] = Depends(get_app_session_factory),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    gate: QuotaGate = Depends(get_quota_gate),
    metrics: MetricsClient = Depends(get_metrics),
) -> EventSourceResponse:
    """Stream a content analysis as Server-Sent Events.

    Logged-in users are rate limited per account, consume quota and get a
    persisted analysis record; anonymous callers are rate limited per IP.

    Raises:
        ValidationFailedError: Invalid content (400)
        RateLimitExceededError: Window full (429)
        QuotaExceededError: Monthly quota used up (403)
    """
    content = validate_content(payload.content, payload.input_type, settings)
    locale = normalize_locale(payload.locale)

    if user is not None:
        key = f"analyze:user:{user.user_id}"
    else:
        key = f"analyze:ip:{get_client_identifier(request.headers)}"
    enforce_rate_limit(limiter, key, RATE_LIMITS["analyze"], route=ROUTE, metrics=metrics)

    analysis_id = None
    if user is not None:
        await enforce_quota(gate, user.user_id, route=ROUTE, metrics=metrics)
        spawn_detached(
            run_in_threadpool(gate.increment_usage, user.user_id),
            name="usage-increment",
        )
        try:
            analysis_id = await run_in_threadpool(
                _create_record, session_factory, user.user_id, content, locale
            )
        except SQLAlchemyError:
            logger.exception(
                "Failed to create analysis record, streaming without persistence",
                extra={"user_id": str(user.user_id)},
            )

    record_admission(ROUTE, "allowed", client=metrics)
    finalizer = AnalysisFinalizer(session_factory, analysis_id)
    return _open_stream(content, locale, finalizer, settings, metrics)


@router.get("/stream")
async def stream_analysis_anonymous(
    request: Request,
    content: str = Query(default=""),
    locale: str = Query(default="zh"),
    input_type: Literal["text", "url"] = Query(default="text", alias="inputType"),
    settings: Settings = Depends(get_app_settings),
    session_factory: sessionmaker[Session] = Depends(get_app_session_factory),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    metrics: MetricsClient = Depends(get_metrics),
) -> EventSourceResponse:
    """Stream an anonymous analysis for EventSource clients.

    Rate limited per IP; no quota and no persisted record.
    """
    content = validate_content(content, input_type, settings)
    key = f"analyze:ip:{get_client_identifier(request.headers)}"
    enforce_rate_limit(limiter, key, RATE_LIMITS["analyze"], route=ROUTE, metrics=metrics)

    record_admission(ROUTE, "allowed", client=metrics)
    finalizer = AnalysisFinalizer(session_factory, None)
    return _open_stream(content, normalize_locale(locale), finalizer, settings, metrics)
