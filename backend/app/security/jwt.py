"""Verification of access tokens issued by the hosted auth provider."""

from datetime import datetime, timezone
from uuid import UUID

import jwt
from pydantic import BaseModel

from backend.app.config import get_settings


class TokenPayload(BaseModel):
    """Verified access token claims."""

    user_id: UUID
    email: str | None = None
    role: str | None = None
    expires_at: datetime


class AuthenticationError(Exception):
    """Authentication-related errors."""

    pass


def verify_access_token(token: str) -> TokenPayload:
    """Verify and decode an auth provider access token.

    Args:
        token: JWT token string (HS256, signed with the provider's secret)

    Returns:
        TokenPayload with the user's id

    Raises:
        AuthenticationError: If token is invalid, expired, or for another audience
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=settings.supabase_jwt_audience,
            options={"require": ["sub", "exp"]},
        )
        return TokenPayload(
            user_id=UUID(payload["sub"]),
            email=payload.get("email"),
            role=payload.get("role"),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(f"Invalid token: {e}")
    except (KeyError, ValueError) as e:
        raise AuthenticationError(f"Malformed token payload: {e}")
