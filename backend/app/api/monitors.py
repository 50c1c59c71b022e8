"""Brand monitor check endpoints."""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sse_starlette.sse import EventSourceResponse
from starlette.concurrency import run_in_threadpool

from backend.app.api.auth import CurrentUser, get_current_user, get_optional_user
from backend.app.api.deps import (
    EngineProvider,
    SentimentProvider,
    enforce_quota,
    enforce_rate_limit,
    get_answer_engines,
    get_app_session_factory,
    get_app_settings,
    get_db_session,
    get_metrics,
    get_quota_gate,
    get_rate_limiter,
    get_sentiment_analyzer,
)
from backend.app.config import Settings
from backend.app.db.records import (
    complete_check,
    create_check,
    fail_check,
    get_owned_monitor,
    list_checks,
    list_enabled_questions,
)
from backend.app.errors import NotFoundError, PersistenceError, UnauthorizedError
from backend.app.metrics.core import record_admission
from backend.app.metrics.registry import MetricsClient
from backend.app.monitor import (
    BrandMonitorCheck,
    CheckQuery,
    CheckResult,
    MonitorConfig,
)
from backend.app.monitor.events import (
    MonitorCompleteData,
    MonitorCompleteEvent,
    MonitorErrorEvent,
)
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

router = APIRouter(prefix="/api/monitors", tags=["monitors"])

ROUTE = "monitor_run"

MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 20


class CheckListItem(WireModel):
    id: UUID
    status: str
    summary: dict[str, Any] | None
    query_count: int
    engine_count: int
    duration: int | None
    created_at: datetime


class CheckListResponse(WireModel):
    """One page of a monitor's check history."""

    checks: list[CheckListItem]
    total: int
    page: int
    page_size: int


class CheckFinalizer(SessionFinalizer[CheckResult]):
    """Writes the terminal state of a check record."""

    def __init__(self, session_factory: sessionmaker[Session], check_id: UUID) -> None:
        self.session_factory = session_factory
        self.check_id = check_id

    async def persist_success(self, result: CheckResult, duration_ms: int) -> None:
        await run_in_threadpool(self._complete, result, duration_ms)

    async def persist_failure(self, error: BaseException, duration_ms: int) -> None:
        await run_in_threadpool(self._fail)

    def _complete(self, result: CheckResult, duration_ms: int) -> None:
        with self.session_factory() as session:
            complete_check(
                session,
                self.check_id,
                summary=result.summary.model_dump(by_alias=True, mode="json"),
                detail=result.detail.model_dump(by_alias=True, mode="json"),
                query_count=result.summary.total_queries,
                engine_count=result.summary.total_engines,
                duration=duration_ms,
            )

    def _fail(self) -> None:
        with self.session_factory() as session:
            fail_check(session, self.check_id)

    def completion_event(self, result: CheckResult, duration_ms: int) -> SSEEvent:
        return MonitorCompleteEvent(
            data=MonitorCompleteData(
                check_id=str(self.check_id),
                summary=result.summary,
                detail=result.detail,
                duration=duration_ms,
            )
        )

    def error_event(self, error: BaseException) -> SSEEvent:
        return MonitorErrorEvent.from_message(str(error) or "Check failed")


def clamp_page(page: int, page_size: int) -> tuple[int, int]:
    """Clamp pagination to page >= 0 and 1 <= page_size <= 50."""
    return max(0, page), min(MAX_PAGE_SIZE, max(1, page_size))


def _load_monitor(
    session_factory: sessionmaker[Session], monitor_id: UUID, user_id: UUID
) -> tuple[MonitorConfig, list[CheckQuery]] | None:
    with session_factory() as session:
        monitor = get_owned_monitor(session, monitor_id, user_id)
        if monitor is None:
            return None
        questions = [
            CheckQuery(query=q.question, type=q.intent_type)
            for q in list_enabled_questions(session, monitor_id, user_id)
        ]
        return MonitorConfig.from_record(monitor), questions


def _create_check(
    session_factory: sessionmaker[Session], monitor_id: UUID, user_id: UUID
) -> UUID:
    with session_factory() as session:
        return create_check(session, monitor_id, user_id).id


@router.post("/{monitor_id}/run")
async def run_check(
    monitor_id: UUID,
    request: Request,
    user: CurrentUser | None = Depends(get_optional_user),
    settings: Settings = Depends(get_app_settings),
    session_factory: sessionmaker[Session] = Depends(get_app_session_factory),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    gate: QuotaGate = Depends(get_quota_gate),
    metrics: MetricsClient = Depends(get_metrics),
    engine_provider: EngineProvider = Depends(get_answer_engines),
    sentiment_provider: SentimentProvider = Depends(get_sentiment_analyzer),
) -> EventSourceResponse:
    """Run a brand monitor check and stream its progress.

    Admission order: per-IP rate limit, authentication, quota, ownership.

    Raises:
        RateLimitExceededError: Window full (429)
        UnauthorizedError: No valid token (401)
        QuotaExceededError: Monthly quota used up (403)
        NotFoundError: Monitor missing or owned by someone else (404)
        PersistenceError: Check record could not be created (500)
    """
    key = f"monitor-run:{get_client_identifier(request.headers)}"
    enforce_rate_limit(
        limiter, key, RATE_LIMITS["monitor_run"], route=ROUTE, metrics=metrics
    )

    if user is None:
        raise UnauthorizedError()

    await enforce_quota(gate, user.user_id, route=ROUTE, metrics=metrics)

    try:
        loaded = await run_in_threadpool(
            _load_monitor, session_factory, monitor_id, user.user_id
        )
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to load monitor") from e
    if loaded is None:
        raise NotFoundError("Monitor not found")
    monitor, questions = loaded

    try:
        check_id = await run_in_threadpool(
            _create_check, session_factory, monitor_id, user.user_id
        )
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to create check record") from e

    spawn_detached(
        run_in_threadpool(gate.increment_usage, user.user_id),
        name="usage-increment",
    )
    record_admission(ROUTE, "allowed", client=metrics)

    engines = engine_provider()
    check = BrandMonitorCheck(monitor, questions, engines, sentiment_provider())
    session = SSESession(
        check.run,
        CheckFinalizer(session_factory, check_id),
        deadline_s=settings.sse_deadline_s,
        kind="monitor_check",
        metrics=metrics,
    )
    logger.info(
        "monitor_check_started",
        extra={
            "monitor_id": str(monitor_id),
            "check_id": str(check_id),
            "questions": len(questions),
            "engines": len(engines),
        },
    )
    return build_sse_response(session, settings)


@router.get("/{monitor_id}/checks", response_model=CheckListResponse)
def get_checks(
    monitor_id: UUID,
    page: int = Query(default=0),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, alias="pageSize"),
    current_user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
) -> CheckListResponse:
    """List a monitor's checks, newest first."""
    page, page_size = clamp_page(page, page_size)
    rows, total = list_checks(
        session, monitor_id, current_user.user_id, page=page, page_size=page_size
    )
    return CheckListResponse(
        checks=[CheckListItem.model_validate(row, from_attributes=True) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
    )
