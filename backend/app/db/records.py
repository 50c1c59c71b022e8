"""Persistence helpers for analysis and check records.

Records are created in `running` state before a stream opens and receive
exactly one terminal write. Terminal updates are guarded by
`status = 'running'`, so a record that already reached a terminal state is
never mutated again.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from backend.app.db.models import (
    Analysis,
    BrandMonitor,
    MonitorCheck,
    MonitorQuestion,
    RunStatus,
)

# Only the first 500 characters of analysed text are stored
STORED_CONTENT_CHARS = 500


def create_analysis(
    session: Session,
    user_id: UUID,
    *,
    content: str,
    locale: str,
    content_type: str = "text",
) -> Analysis:
    """Insert a running analysis record.

    Args:
        session: Database session
        user_id: Owner of the analysis
        content: Raw content being analysed
        locale: Analysis locale
        content_type: "text" or "url"

    Returns:
        The committed Analysis row
    """
    analysis = Analysis(
        user_id=user_id,
        content_type=content_type,
        content=content[:STORED_CONTENT_CHARS] if content_type == "text" else None,
        url=content if content_type == "url" else None,
        locale=locale,
        status=RunStatus.running.value,
    )
    session.add(analysis)
    session.commit()
    session.refresh(analysis)
    return analysis


def complete_analysis(
    session: Session,
    analysis_id: UUID,
    *,
    score: int,
    results: dict[str, Any],
    duration: int,
) -> bool:
    """Mark a running analysis completed.

    Returns:
        True if the record was updated, False if it was missing or already terminal
    """
    result = session.execute(
        update(Analysis)
        .where(Analysis.id == analysis_id, Analysis.status == RunStatus.running.value)
        .values(
            status=RunStatus.completed.value,
            score=score,
            results=results,
            duration=duration,
        )
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount > 0


def fail_analysis(session: Session, analysis_id: UUID) -> bool:
    """Mark a running analysis failed."""
    result = session.execute(
        update(Analysis)
        .where(Analysis.id == analysis_id, Analysis.status == RunStatus.running.value)
        .values(status=RunStatus.failed.value)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount > 0


def get_owned_analysis(
    session: Session, analysis_id: UUID, user_id: UUID
) -> Analysis | None:
    """Select an analysis by id, scoped to its owner."""
    stmt = select(Analysis).where(Analysis.id == analysis_id, Analysis.user_id == user_id)
    return session.execute(stmt).scalar_one_or_none()


def delete_owned_analysis(session: Session, analysis_id: UUID, user_id: UUID) -> bool:
    """Delete an analysis owned by the user.

    Returns:
        True if a row was deleted
    """
    analysis = get_owned_analysis(session, analysis_id, user_id)
    if analysis is None:
        return False
    session.delete(analysis)
    session.commit()
    return True


def get_owned_monitor(
    session: Session, monitor_id: UUID, user_id: UUID
) -> BrandMonitor | None:
    """Select a brand monitor by id, scoped to its owner."""
    stmt = select(BrandMonitor).where(
        BrandMonitor.id == monitor_id, BrandMonitor.user_id == user_id
    )
    return session.execute(stmt).scalar_one_or_none()


def list_enabled_questions(
    session: Session, monitor_id: UUID, user_id: UUID
) -> list[MonitorQuestion]:
    """List enabled questions ordered by keyword, then sort order."""
    stmt = (
        select(MonitorQuestion)
        .where(
            MonitorQuestion.monitor_id == monitor_id,
            MonitorQuestion.user_id == user_id,
            MonitorQuestion.enabled.is_(True),
        )
        .order_by(MonitorQuestion.core_keyword, MonitorQuestion.sort_order)
    )
    return list(session.execute(stmt).scalars().all())


def create_check(session: Session, monitor_id: UUID, user_id: UUID) -> MonitorCheck:
    """Insert a running check record with zero counts."""
    check = MonitorCheck(
        monitor_id=monitor_id,
        user_id=user_id,
        status=RunStatus.running.value,
        query_count=0,
        engine_count=0,
    )
    session.add(check)
    session.commit()
    session.refresh(check)
    return check


def complete_check(
    session: Session,
    check_id: UUID,
    *,
    summary: dict[str, Any],
    detail: dict[str, Any],
    query_count: int,
    engine_count: int,
    duration: int,
) -> bool:
    """Mark a running check completed with its results."""
    result = session.execute(
        update(MonitorCheck)
        .where(MonitorCheck.id == check_id, MonitorCheck.status == RunStatus.running.value)
        .values(
            status=RunStatus.completed.value,
            summary=summary,
            detail=detail,
            query_count=query_count,
            engine_count=engine_count,
            duration=duration,
        )
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount > 0


def fail_check(session: Session, check_id: UUID) -> bool:
    """Mark a running check failed."""
    result = session.execute(
        update(MonitorCheck)
        .where(MonitorCheck.id == check_id, MonitorCheck.status == RunStatus.running.value)
        .values(status=RunStatus.failed.value)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount > 0


def list_checks(
    session: Session,
    monitor_id: UUID,
    user_id: UUID,
    *,
    page: int,
    page_size: int,
) -> tuple[list[MonitorCheck], int]:
    """List a monitor's checks newest first.

    Returns:
        (checks on the requested page, total number of checks)
    """
    scope = (MonitorCheck.monitor_id == monitor_id, MonitorCheck.user_id == user_id)
    total = session.execute(
        select(func.count()).select_from(MonitorCheck).where(*scope)
    ).scalar_one()
    stmt = (
        select(MonitorCheck)
        .where(*scope)
        .order_by(MonitorCheck.created_at.desc())
        .offset(page * page_size)
        .limit(page_size)
    )
    return list(session.execute(stmt).scalars().all()), total
