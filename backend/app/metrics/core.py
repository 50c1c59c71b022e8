"""Metrics façade for admission and stream session tracking."""

import logging

from backend.app.metrics.registry import MetricsClient

logger = logging.getLogger(__name__)


def record_stream_session(
    kind: str,
    outcome: str,
    duration_ms: int,
    events_sent: int,
    client: MetricsClient | None = None,
) -> None:
    """Record metrics for one finished SSE session.

    This is a simple implementation that logs metrics and, when given a
    client, counts them in process.

    Args:
        kind: Stream kind ("analysis" or "monitor_check").
        outcome: Terminal state ("completed", "failed", "client_aborted").
        duration_ms: Wall-clock time from open to close.
        events_sent: Events written to the wire, terminal event included.
        client: Optional in-process registry.
    """
    logger.info(
        "stream_session_metric",
        extra={
            "kind": kind,
            "outcome": outcome,
            "duration_ms": duration_ms,
            "events_sent": events_sent,
        },
    )
    if client is not None:
        client.observe_stream_session(kind, outcome, duration_ms, events_sent)


def record_admission(
    route: str,
    decision: str,
    client: MetricsClient | None = None,
) -> None:
    """Record an admission decision ("allowed", "rate_limited", "quota_exceeded")."""
    logger.info("admission_metric", extra={"route": route, "decision": decision})
    if client is not None:
        client.inc_admission(route, decision)
