"""Tests for analysis/check persistence and stale-run reconciliation."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from backend.app.db.models import Analysis, MonitorCheck, RunStatus
from backend.app.db.reconcile import reconcile_stale_runs
from backend.app.db.records import (
    STORED_CONTENT_CHARS,
    complete_analysis,
    complete_check,
    create_analysis,
    create_check,
    delete_owned_analysis,
    fail_analysis,
    fail_check,
    get_owned_analysis,
    get_owned_monitor,
    list_checks,
    list_enabled_questions,
)


@pytest.mark.unit
class TestAnalysisRecords:
    def test_create_truncates_content(self, test_session, user_id):
        analysis = create_analysis(test_session, user_id, content="x" * 800, locale="en")

        assert analysis.status == RunStatus.running.value
        assert len(analysis.content) == STORED_CONTENT_CHARS
        assert analysis.content_type == "text"
        assert analysis.url is None

    def test_complete_once(self, test_session, user_id):
        analysis = create_analysis(test_session, user_id, content="body", locale="zh")

        assert complete_analysis(
            test_session, analysis.id, score=72, results={"overallQuality": 72}, duration=40
        )
        # A terminal record is never written again
        assert not fail_analysis(test_session, analysis.id)

        test_session.expire_all()
        stored = test_session.get(Analysis, analysis.id)
        assert stored.status == "completed"
        assert stored.score == 72
        assert stored.results == {"overallQuality": 72}
        assert stored.duration == 40

    def test_fail(self, test_session, user_id):
        analysis = create_analysis(test_session, user_id, content="body", locale="zh")
        assert fail_analysis(test_session, analysis.id)

        test_session.expire_all()
        assert test_session.get(Analysis, analysis.id).status == "failed"

    def test_owner_scoping(self, test_session, user_id):
        analysis = create_analysis(test_session, user_id, content="body", locale="zh")
        stranger = uuid4()

        assert get_owned_analysis(test_session, analysis.id, stranger) is None
        assert not delete_owned_analysis(test_session, analysis.id, stranger)
        assert get_owned_analysis(test_session, analysis.id, user_id) is not None
        assert delete_owned_analysis(test_session, analysis.id, user_id)
        assert get_owned_analysis(test_session, analysis.id, user_id) is None


@pytest.mark.unit
class TestMonitorRecords:
    def test_monitor_is_owner_scoped(self, test_session, test_monitor, user_id):
        assert get_owned_monitor(test_session, test_monitor.id, user_id) is not None
        assert get_owned_monitor(test_session, test_monitor.id, uuid4()) is None

    def test_enabled_questions_in_order(self, test_session, test_monitor, user_id):
        questions = list_enabled_questions(test_session, test_monitor.id, user_id)
        assert [q.question for q in questions] == ["best crm for startups", "acme vs globex"]

    def test_check_lifecycle(self, test_session, test_monitor, user_id):
        check = create_check(test_session, test_monitor.id, user_id)
        assert check.status == "running"
        assert check.query_count == 0

        assert complete_check(
            test_session,
            check.id,
            summary={"mentionRate": 0.5},
            detail={"queries": []},
            query_count=2,
            engine_count=1,
            duration=900,
        )
        assert not fail_check(test_session, check.id)

        test_session.expire_all()
        stored = test_session.get(MonitorCheck, check.id)
        assert stored.status == "completed"
        assert stored.summary == {"mentionRate": 0.5}
        assert stored.query_count == 2

    def test_list_checks_newest_first(self, test_session, test_monitor, user_id):
        base = datetime(2025, 5, 1, tzinfo=UTC)
        ids = []
        for i in range(3):
            check = create_check(test_session, test_monitor.id, user_id)
            check.created_at = base + timedelta(hours=i)
            ids.append(check.id)
        test_session.commit()

        rows, total = list_checks(test_session, test_monitor.id, user_id, page=0, page_size=2)
        assert total == 3
        assert [r.id for r in rows] == [ids[2], ids[1]]

        rows, _ = list_checks(test_session, test_monitor.id, user_id, page=1, page_size=2)
        assert [r.id for r in rows] == [ids[0]]

        rows, total = list_checks(test_session, test_monitor.id, uuid4(), page=0, page_size=2)
        assert (rows, total) == ([], 0)


@pytest.mark.unit
def test_reconcile_aborts_only_stale_running(test_session, test_monitor, user_id):
    now = datetime(2025, 5, 1, 12, 0, tzinfo=UTC)
    stale = create_analysis(test_session, user_id, content="a", locale="en")
    fresh = create_analysis(test_session, user_id, content="b", locale="en")
    done = create_analysis(test_session, user_id, content="c", locale="en")
    stale_check = create_check(test_session, test_monitor.id, user_id)

    stale.created_at = now - timedelta(minutes=45)
    fresh.created_at = now - timedelta(minutes=5)
    done.created_at = now - timedelta(minutes=45)
    stale_check.created_at = now - timedelta(hours=2)
    test_session.commit()
    fail_analysis(test_session, done.id)

    counts = reconcile_stale_runs(test_session, timeout_minutes=30, now=now)

    assert counts == {"analyses": 1, "checks": 1}
    test_session.expire_all()
    assert test_session.get(Analysis, stale.id).status == "aborted"
    assert test_session.get(Analysis, fresh.id).status == "running"
    assert test_session.get(Analysis, done.id).status == "failed"
    assert test_session.get(MonitorCheck, stale_check.id).status == "aborted"
