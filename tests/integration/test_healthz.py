"""Integration tests for /healthz."""

from unittest.mock import MagicMock, patch

import pytest
import redis


@pytest.mark.integration
def test_healthz_ok(test_client):
    with patch("backend.app.api.health.redis.from_url", return_value=MagicMock()):
        response = test_client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "checks": {"db": "ok", "redis": "ok"}}


@pytest.mark.integration
def test_healthz_503_when_redis_down(test_client):
    broken = MagicMock()
    broken.ping.side_effect = redis.ConnectionError("Connection refused")

    with patch("backend.app.api.health.redis.from_url", return_value=broken):
        response = test_client.get("/healthz")

    assert response.status_code == 503
    assert response.json()["checks"]["redis"] == "down"


@pytest.mark.integration
def test_security_headers(test_client):
    with patch("backend.app.api.health.redis.from_url", return_value=MagicMock()):
        response = test_client.get("/healthz")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
