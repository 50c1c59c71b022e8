"""Tests for error rendering."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from backend.app.errors import (
    NotFoundError,
    QuotaExceededError,
    RateLimitExceededError,
    UnauthorizedError,
    register_exception_handlers,
)


class Payload(BaseModel):
    content: str


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/limited")
    async def limited():
        raise RateLimitExceededError(42)

    @app.get("/quota")
    async def quota():
        raise QuotaExceededError(limit=5, plan="free")

    @app.get("/auth")
    async def auth():
        raise UnauthorizedError(headers={"WWW-Authenticate": "Bearer"})

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Monitor not found")

    @app.post("/validate")
    async def validate(payload: Payload):
        return payload

    return TestClient(app)


@pytest.mark.unit
class TestErrorRendering:
    def test_rate_limit(self, client):
        response = client.get("/limited")
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.json() == {"error": "Too many requests"}

    def test_quota(self, client):
        response = client.get("/quota")
        assert response.status_code == 403
        assert response.json() == {
            "error": "Quota exceeded",
            "remaining": 0,
            "limit": 5,
            "plan": "free",
        }

    def test_unauthorized(self, client):
        response = client.get("/auth")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_not_found(self, client):
        response = client.get("/missing")
        assert response.status_code == 404
        assert response.json() == {"error": "Monitor not found"}

    def test_validation_is_400(self, client):
        response = client.post("/validate", json={})
        assert response.status_code == 400
        assert response.json()["error"].startswith("content: ")
