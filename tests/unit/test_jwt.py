"""Tests for access token verification."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import jwt
import pytest

from backend.app.config import get_settings
from backend.app.security.jwt import AuthenticationError, verify_access_token


@pytest.mark.unit
class TestVerifyAccessToken:
    def test_valid_token(self, token_factory):
        user_id = uuid4()
        payload = verify_access_token(token_factory(user_id))

        assert payload.user_id == user_id
        assert payload.email == "test@example.com"
        assert payload.role == "authenticated"
        assert payload.expires_at > datetime.now(UTC)

    def test_expired_token(self, token_factory):
        token = token_factory(uuid4(), expires_in_s=-60)
        with pytest.raises(AuthenticationError, match="expired"):
            verify_access_token(token)

    def test_wrong_audience(self, token_factory):
        token = token_factory(uuid4(), aud="anon")
        with pytest.raises(AuthenticationError, match="Invalid token"):
            verify_access_token(token)

    def test_wrong_secret(self):
        settings = get_settings()
        token = jwt.encode(
            {
                "sub": str(uuid4()),
                "aud": settings.supabase_jwt_audience,
                "exp": datetime.now(UTC) + timedelta(minutes=5),
            },
            "another-secret",
            algorithm="HS256",
        )
        with pytest.raises(AuthenticationError, match="Invalid token"):
            verify_access_token(token)

    def test_missing_subject(self):
        settings = get_settings()
        token = jwt.encode(
            {
                "aud": settings.supabase_jwt_audience,
                "exp": datetime.now(UTC) + timedelta(minutes=5),
            },
            settings.supabase_jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(AuthenticationError):
            verify_access_token(token)

    def test_subject_must_be_uuid(self, token_factory):
        token = token_factory(uuid4(), sub="not-a-uuid")
        with pytest.raises(AuthenticationError, match="Malformed"):
            verify_access_token(token)

    def test_garbage(self):
        with pytest.raises(AuthenticationError):
            verify_access_token("not.a.jwt")
