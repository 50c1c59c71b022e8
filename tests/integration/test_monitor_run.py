"""Integration tests for brand monitor check runs and history."""

from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from backend.app.api.deps import get_answer_engines, get_sentiment_analyzer
from backend.app.db.models import MonitorCheck, Usage
from backend.app.db.records import create_check
from backend.app.monitor.sentiment import NeutralSentimentAnalyzer
from backend.app.monitor.types import EngineAnswer
from backend.app.quota import QuotaGate
from tests.integration.sse_helpers import parse_sse, wait_for

ANSWERS = {
    "best crm for startups": "Top picks:\n1. GlobexCRM\n2. Acme\nSee https://www.g2.com/crm",
    "acme vs globex": "",
}


class ScriptedEngine:
    name = "scripted"

    async def ask(self, query: str, locale: str) -> EngineAnswer:
        return EngineAnswer(engine=self.name, answer=ANSWERS.get(query, ""), duration=3)


@pytest.fixture
def engines(test_app):
    test_app.dependency_overrides[get_answer_engines] = lambda: lambda: [ScriptedEngine()]
    test_app.dependency_overrides[get_sentiment_analyzer] = lambda: NeutralSentimentAnalyzer


def run_url(monitor_id) -> str:
    return f"/api/monitors/{monitor_id}/run"


@pytest.mark.integration
class TestRunAdmission:
    def test_requires_authentication(self, test_client, test_monitor):
        response = test_client.post(run_url(test_monitor.id))

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_rate_limit_applies_before_auth(self, test_client, test_monitor):
        for _ in range(3):
            assert test_client.post(run_url(test_monitor.id)).status_code == 401

        response = test_client.post(run_url(test_monitor.id))
        assert response.status_code == 429
        assert "Retry-After" in response.headers

    def test_rejected_requests_never_build_clients(self, test_client, test_app, test_monitor):
        built: list[str] = []

        def engines() -> list:
            built.append("engines")
            return [ScriptedEngine()]

        def sentiment() -> NeutralSentimentAnalyzer:
            built.append("sentiment")
            return NeutralSentimentAnalyzer()

        test_app.dependency_overrides[get_answer_engines] = lambda: engines
        test_app.dependency_overrides[get_sentiment_analyzer] = lambda: sentiment

        statuses = [test_client.post(run_url(test_monitor.id)).status_code for _ in range(4)]

        assert statuses == [401, 401, 401, 429]
        assert built == []

    def test_unknown_monitor(self, test_client, auth_headers, engines):
        response = test_client.post(run_url(uuid4()), headers=auth_headers)

        assert response.status_code == 404
        assert response.json() == {"error": "Monitor not found"}

    def test_other_users_monitor_is_not_found(
        self, test_client, test_monitor, token_factory, engines
    ):
        headers = {"Authorization": f"Bearer {token_factory(uuid4())}"}
        response = test_client.post(run_url(test_monitor.id), headers=headers)
        assert response.status_code == 404

    def test_quota_exceeded(self, test_client, test_app, test_monitor, auth_headers, user_id):
        for _ in range(5):
            test_app.state.quota_gate.increment_usage(user_id)

        response = test_client.post(run_url(test_monitor.id), headers=auth_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Quota exceeded"


@pytest.mark.integration
class TestRunStream:
    def test_streams_check_and_persists_result(
        self, test_client, test_monitor, auth_headers, engines, test_session_factory
    ):
        response = test_client.post(run_url(test_monitor.id), headers=auth_headers)

        assert response.status_code == 200
        events = parse_sse(response.text)
        types = [e["type"] for e in events]
        assert types[0] == "monitor_init"
        assert types[1] == "monitor_queries"
        assert types[-1] == "monitor_complete"
        assert types.count("monitor_query_complete") == 2
        assert types.count("monitor_sentiment") == 2

        init = events[0]["data"]
        assert init == {
            "monitorId": str(test_monitor.id),
            "monitorName": "Acme watch",
            "brandNames": ["Acme", "AcmeCRM"],
            "totalEngines": 1,
        }
        assert [q["query"] for q in events[1]["data"]["queries"]] == [
            "best crm for startups",
            "acme vs globex",
        ]

        complete = events[-1]["data"]
        summary = complete["summary"]
        assert summary["mentionRate"] == 0.5
        assert summary["avgPosition"] == 2.0
        assert summary["shareOfVoice"] == {"Acme": 0.5, "Globex": 0.5}
        assert summary["sentimentDistribution"] == {"positive": 0, "neutral": 1, "negative": 0}
        first = complete["detail"]["queries"][0]
        assert first["engineResults"][0]["citations"][0]["domain"] == "g2.com"

        with test_session_factory() as session:
            check = session.get(MonitorCheck, UUID(complete["checkId"]))
        assert check.status == "completed"
        assert check.query_count == 2
        assert check.engine_count == 1
        assert check.summary["mentionRate"] == 0.5
        assert check.detail["queries"][1]["brandMentioned"] is False

    def test_increments_usage(
        self, test_client, test_monitor, auth_headers, engines, test_session_factory, user_id
    ):
        test_client.post(run_url(test_monitor.id), headers=auth_headers)

        def counted() -> bool:
            with test_session_factory() as session:
                usage = session.execute(
                    select(Usage).where(Usage.user_id == user_id)
                ).scalar_one_or_none()
            return usage is not None and usage.analysis_count == 1

        assert wait_for(counted)

    def test_no_engines_fails_the_check(
        self, test_client, test_app, test_monitor, auth_headers, test_session_factory
    ):
        test_app.dependency_overrides[get_answer_engines] = lambda: lambda: []
        test_app.dependency_overrides[get_sentiment_analyzer] = lambda: NeutralSentimentAnalyzer

        response = test_client.post(run_url(test_monitor.id), headers=auth_headers)

        events = parse_sse(response.text)
        assert events == [
            {
                "type": "monitor_error",
                "timestamp": events[0]["timestamp"],
                "data": {"message": "No search engines available", "code": "CHECK_ERROR"},
            }
        ]
        with test_session_factory() as session:
            statuses = session.execute(select(MonitorCheck.status)).scalars().all()
        assert statuses == ["failed"]
        assert test_app.state.metrics.get_stream_outcome_count("monitor_check", "failed") == 1


@pytest.mark.integration
class TestCheckHistory:
    @pytest.fixture
    def checks(self, test_session, test_monitor, user_id):
        base = datetime(2025, 5, 1, tzinfo=UTC)
        created = []
        for i in range(3):
            check = create_check(test_session, test_monitor.id, user_id)
            check.created_at = base + timedelta(days=i)
            created.append(check)
        test_session.commit()
        return created

    def test_requires_auth(self, test_client, test_monitor):
        response = test_client.get(f"/api/monitors/{test_monitor.id}/checks")
        assert response.status_code == 401

    def test_pages_newest_first(self, test_client, test_monitor, auth_headers, checks):
        response = test_client.get(
            f"/api/monitors/{test_monitor.id}/checks",
            params={"page": 0, "pageSize": 2},
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["page"] == 0
        assert body["pageSize"] == 2
        assert [c["id"] for c in body["checks"]] == [str(checks[2].id), str(checks[1].id)]
        assert body["checks"][0]["status"] == "running"
        assert body["checks"][0]["queryCount"] == 0

    @pytest.mark.parametrize(
        "params,page,page_size",
        [
            ({}, 0, 20),
            ({"pageSize": 500}, 0, 50),
            ({"pageSize": 0}, 0, 1),
            ({"page": -3}, 0, 20),
        ],
    )
    def test_clamps_pagination(
        self, test_client, test_monitor, auth_headers, checks, params, page, page_size
    ):
        body = test_client.get(
            f"/api/monitors/{test_monitor.id}/checks", params=params, headers=auth_headers
        ).json()
        assert (body["page"], body["pageSize"]) == (page, page_size)

    def test_other_users_see_nothing(self, test_client, test_monitor, token_factory, checks):
        headers = {"Authorization": f"Bearer {token_factory(uuid4())}"}
        body = test_client.get(
            f"/api/monitors/{test_monitor.id}/checks", headers=headers
        ).json()
        assert body["total"] == 0
        assert body["checks"] == []


class UnavailableQuotaGate(QuotaGate):
    async def check_quota(self, user_id):
        raise RuntimeError("quota service unavailable")


@pytest.mark.integration
def test_failed_quota_check_still_runs(
    test_client, test_app, test_monitor, auth_headers, engines, test_session_factory
):
    test_app.state.quota_gate = UnavailableQuotaGate(test_session_factory, default_limit=5)

    response = test_client.post(run_url(test_monitor.id), headers=auth_headers)

    assert response.status_code == 200
    assert parse_sse(response.text)[-1]["type"] == "monitor_complete"
