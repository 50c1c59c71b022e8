"""In-process metrics registry for admission and streaming."""

from collections import defaultdict
from threading import Lock


class MetricsClient:
    """
    Simple in-process metrics client.

    Stores metrics in memory for testing and internal monitoring.
    Can be replaced with Prometheus/OpenTelemetry in the future.
    """

    def __init__(self) -> None:
        self._lock = Lock()

        # Session outcomes: kind -> outcome -> count
        self.stream_outcomes: dict[str, dict[str, int]] = defaultdict(
            lambda: defaultdict(int)
        )

        # Session durations: kind -> list of duration_ms
        self.stream_durations: dict[str, list[int]] = defaultdict(list)

        # Events written per session: kind -> list of counts
        self.stream_events: dict[str, list[int]] = defaultdict(list)

        # Admission decisions: route -> decision -> count
        self.admissions: dict[str, dict[str, int]] = defaultdict(
            lambda: defaultdict(int)
        )

    def observe_stream_session(
        self, kind: str, outcome: str, duration_ms: int, events_sent: int
    ) -> None:
        """Record one finished stream session."""
        with self._lock:
            self.stream_outcomes[kind][outcome] += 1
            self.stream_durations[kind].append(duration_ms)
            self.stream_events[kind].append(events_sent)

    def inc_admission(self, route: str, decision: str) -> None:
        """Increment the admission counter for a route and decision."""
        with self._lock:
            self.admissions[route][decision] += 1

    def get_stream_outcome_count(self, kind: str, outcome: str | None = None) -> int:
        """Get session count for a kind, optionally filtered by outcome."""
        outcomes = self.stream_outcomes.get(kind, {})
        if outcome:
            return outcomes.get(outcome, 0)
        return sum(outcomes.values())

    def get_stream_duration_stats(self, kind: str) -> dict[str, float]:
        """Get duration statistics for a stream kind."""
        durations = self.stream_durations.get(kind, [])
        if not durations:
            return {"count": 0, "min": 0, "max": 0, "avg": 0}

        return {
            "count": len(durations),
            "min": min(durations),
            "max": max(durations),
            "avg": sum(durations) / len(durations),
        }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self.stream_outcomes.clear()
            self.stream_durations.clear()
            self.stream_events.clear()
            self.admissions.clear()
