"""Per-user monthly usage ceiling.

Usage rows are keyed by (user_id, period) where period is the UTC calendar
month, so a new month starts from zero without any reset job.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from backend.app.db.models import Plan, Subscription, Usage
from backend.app.quota.types import DEFAULT_PLAN, UNLIMITED, QuotaResult

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def current_period(now: datetime | None = None) -> str:
    """Return the quota period ('YYYY-MM') containing `now`, in UTC."""
    now = now or datetime.now(UTC)
    if now.tzinfo is not None:
        now = now.astimezone(UTC)
    return now.strftime("%Y-%m")


class QuotaGate:
    """Monthly analysis quota backed by the plans/subscriptions/usage tables."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        enforce: bool = False,
        default_limit: int = 5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the gate.

        Args:
            session_factory: Factory for short-lived sessions (one per lookup)
            enforce: When False, checks always allow but still report usage
            default_limit: Limit used when the user has no active plan
            clock: Returns current UTC datetime (for testing)
        """
        self.session_factory = session_factory
        self.enforce = enforce
        self.default_limit = default_limit
        self._clock = clock or (lambda: datetime.now(UTC))

    def _lookup_plan(self, user_id: UUID) -> tuple[str, int]:
        """Return (plan id, analysis limit) of the active subscription."""
        with self.session_factory() as session:
            subscription = session.execute(
                select(Subscription).where(
                    Subscription.user_id == user_id, Subscription.status == "active"
                )
            ).scalars().first()

        if subscription is None:
            return DEFAULT_PLAN, self.default_limit

        plan: Plan | None = subscription.plan
        limit = plan.analysis_limit if plan is not None else self.default_limit
        return subscription.plan_id or DEFAULT_PLAN, limit

    def _lookup_usage(self, user_id: UUID, period: str) -> int:
        with self.session_factory() as session:
            count = session.execute(
                select(Usage.analysis_count).where(
                    Usage.user_id == user_id, Usage.period == period
                )
            ).scalar_one_or_none()
        return count or 0

    async def check_quota(self, user_id: UUID) -> QuotaResult:
        """Check the user's quota for the current period.

        The plan and usage lookups have no ordering dependency and run
        concurrently, each on its own session.

        Args:
            user_id: User to check

        Returns:
            QuotaResult; `remaining` and `limit` are -1 for unlimited plans
        """
        period = current_period(self._clock())
        (plan, limit), used = await asyncio.gather(
            run_in_threadpool(self._lookup_plan, user_id),
            run_in_threadpool(self._lookup_usage, user_id, period),
        )

        if limit == UNLIMITED:
            return QuotaResult(allowed=True, remaining=UNLIMITED, limit=UNLIMITED, plan=plan)

        remaining = max(0, limit - used)
        if not self.enforce:
            # Relaxed mode: usage is still reported, never blocks
            return QuotaResult(allowed=True, remaining=remaining, limit=limit, plan=plan)

        return QuotaResult(allowed=used < limit, remaining=remaining, limit=limit, plan=plan)

    def increment_usage(self, user_id: UUID) -> None:
        """Add one to the user's usage counter for the current period.

        Runs as a single INSERT ... ON CONFLICT DO UPDATE where the dialect
        supports it, so concurrent increments are never lost.
        """
        period = current_period(self._clock())
        with self.session_factory() as session:
            insert_fn = _UPSERT_DIALECTS.get(session.get_bind().dialect.name)
            if insert_fn is not None:
                self._upsert(session, insert_fn, user_id, period)
            else:
                self._update_or_insert(session, user_id, period)

    def _upsert(self, session: Session, insert_fn, user_id: UUID, period: str) -> None:
        now = self._clock()
        stmt = insert_fn(Usage).values(
            user_id=user_id,
            period=period,
            analysis_count=1,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Usage.user_id, Usage.period],
            set_={"analysis_count": Usage.analysis_count + 1, "updated_at": now},
        )
        session.execute(stmt)
        session.commit()

    def _update_or_insert(
        self, session: Session, user_id: UUID, period: str, attempts: int = 3
    ) -> None:
        """Atomic UPDATE first; INSERT when no row exists, retrying on a racing insert."""
        for _ in range(attempts):
            result = session.execute(
                update(Usage)
                .where(Usage.user_id == user_id, Usage.period == period)
                .values(analysis_count=Usage.analysis_count + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                session.commit()
                return
            try:
                session.add(Usage(user_id=user_id, period=period, analysis_count=1))
                session.commit()
                return
            except IntegrityError:
                # Another request created the row first; increment it instead
                session.rollback()
        raise RuntimeError(f"Could not increment usage for {user_id} in {period}")

    def get_plan(self, user_id: UUID) -> str:
        """Return the user's active plan id, or 'free'."""
        plan, _ = self._lookup_plan(user_id)
        return plan
