"""Reconciliation of records stranded in `running`.

A client that disconnects mid-stream leaves its record in `running`: the
session stops writing as soon as the abort is observed. These helpers mark
such records `aborted` once they are older than the stale-run timeout.
"""

from datetime import UTC, datetime, timedelta

from sqlalchemy import Select, select, update
from sqlalchemy.orm import Session

from backend.app.db.models import Analysis, MonitorCheck, RunStatus


def get_stale_running_analyses(
    session: Session,
    timeout_minutes: int = 30,
    now: datetime | None = None,
) -> Select[tuple[Analysis]]:
    """
    Get analyses still running after the timeout.

    Args:
        session: SQLAlchemy session
        timeout_minutes: Age after which a running record counts as stranded
        now: Reference time (default: current UTC time)

    Returns:
        SQLAlchemy Select statement for stranded analyses
    """
    cutoff = (now or datetime.now(UTC)) - timedelta(minutes=timeout_minutes)
    return select(Analysis).where(
        Analysis.status == RunStatus.running.value, Analysis.created_at < cutoff
    )


def get_stale_running_checks(
    session: Session,
    timeout_minutes: int = 30,
    now: datetime | None = None,
) -> Select[tuple[MonitorCheck]]:
    """Get monitor checks still running after the timeout."""
    cutoff = (now or datetime.now(UTC)) - timedelta(minutes=timeout_minutes)
    return select(MonitorCheck).where(
        MonitorCheck.status == RunStatus.running.value, MonitorCheck.created_at < cutoff
    )


def reconcile_stale_runs(
    session: Session,
    timeout_minutes: int = 30,
    now: datetime | None = None,
) -> dict[str, int]:
    """
    Mark stranded running records as aborted.

    Args:
        session: SQLAlchemy session
        timeout_minutes: Age after which a running record counts as stranded
        now: Reference time (default: current UTC time)

    Returns:
        Number of records aborted, by table

    Example:
        counts = reconcile_stale_runs(session, timeout_minutes=30)
        logger.info("reconciled", extra=counts)
    """
    cutoff = (now or datetime.now(UTC)) - timedelta(minutes=timeout_minutes)

    analyses = session.execute(
        update(Analysis)
        .where(Analysis.status == RunStatus.running.value, Analysis.created_at < cutoff)
        .values(status=RunStatus.aborted.value)
        .execution_options(synchronize_session=False)
    )
    checks = session.execute(
        update(MonitorCheck)
        .where(
            MonitorCheck.status == RunStatus.running.value,
            MonitorCheck.created_at < cutoff,
        )
        .values(status=RunStatus.aborted.value)
        .execution_options(synchronize_session=False)
    )
    session.commit()

    return {"analyses": analyses.rowcount or 0, "checks": checks.rowcount or 0}
