"""Unit tests for MetricsClient."""

import pytest

from backend.app.metrics import MetricsClient, record_admission, record_stream_session


@pytest.fixture
def metrics() -> MetricsClient:
    """Create a fresh metrics client."""
    return MetricsClient()


def test_observe_stream_session_records_data(metrics: MetricsClient) -> None:
    """Test that stream sessions are recorded per kind and outcome."""
    metrics.observe_stream_session("analysis", "completed", 120, 4)
    metrics.observe_stream_session("analysis", "failed", 80, 2)
    metrics.observe_stream_session("monitor_check", "completed", 3000, 14)

    assert metrics.get_stream_outcome_count("analysis") == 2
    assert metrics.get_stream_outcome_count("analysis", "completed") == 1
    assert metrics.get_stream_outcome_count("monitor_check", "client_aborted") == 0
    assert metrics.stream_events["analysis"] == [4, 2]


def test_get_stream_duration_stats_calculates_correctly(metrics: MetricsClient) -> None:
    """Test that duration stats are calculated correctly."""
    for duration in (100, 200, 300):
        metrics.observe_stream_session("analysis", "completed", duration, 3)

    stats = metrics.get_stream_duration_stats("analysis")
    assert stats["count"] == 3
    assert stats["min"] == 100
    assert stats["max"] == 300
    assert stats["avg"] == 200


def test_get_stream_duration_stats_empty(metrics: MetricsClient) -> None:
    """Test duration stats for a kind with no sessions."""
    assert metrics.get_stream_duration_stats("analysis") == {
        "count": 0,
        "min": 0,
        "max": 0,
        "avg": 0,
    }


def test_unknown_kind_counts_zero(metrics: MetricsClient) -> None:
    assert metrics.get_stream_outcome_count("nope") == 0


def test_facade_forwards_to_client(metrics: MetricsClient) -> None:
    """Test that the façade functions update the given client."""
    record_admission("analyze", "allowed", client=metrics)
    record_admission("analyze", "rate_limited", client=metrics)
    record_admission("analyze", "allowed", client=metrics)
    record_stream_session("analysis", "completed", 50, 3, client=metrics)

    assert metrics.admissions["analyze"] == {"allowed": 2, "rate_limited": 1}
    assert metrics.get_stream_outcome_count("analysis", "completed") == 1


def test_facade_without_client_only_logs(caplog) -> None:
    with caplog.at_level("INFO", logger="backend.app.metrics.core"):
        record_admission("monitor_run", "quota_exceeded")

    record = next(r for r in caplog.records if r.getMessage() == "admission_metric")
    assert record.route == "monitor_run"
    assert record.decision == "quota_exceeded"


def test_reset_clears_everything(metrics: MetricsClient) -> None:
    metrics.observe_stream_session("analysis", "completed", 10, 1)
    metrics.inc_admission("analyze", "allowed")

    metrics.reset()

    assert metrics.get_stream_outcome_count("analysis") == 0
    assert dict(metrics.admissions) == {}
