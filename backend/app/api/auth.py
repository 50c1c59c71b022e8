"""Authentication dependencies for bearer tokens from the auth provider."""

from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from backend.app.errors import UnauthorizedError
from backend.app.security import AuthenticationError, verify_access_token

__all__ = ["CurrentUser", "get_current_user", "get_optional_user"]


class CurrentUser(BaseModel):
    """Current authenticated user context."""

    user_id: UUID
    email: str | None = None


# Missing credentials are handled below, so anonymous callers reach the route
bearer_scheme = HTTPBearer(auto_error=False)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser | None:
    """Resolve the caller, or None for anonymous and invalid tokens.

    Args:
        credentials: HTTP Authorization header with Bearer token

    Returns:
        CurrentUser when a valid token was presented, otherwise None
    """
    if credentials is None or not credentials.credentials:
        return None
    try:
        payload = verify_access_token(credentials.credentials)
    except AuthenticationError:
        return None
    return CurrentUser(user_id=payload.user_id, email=payload.email)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    """Get current authenticated user from the access token.

    Raises:
        UnauthorizedError: If the token is missing or invalid
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError(
            "Missing authorization token", headers={"WWW-Authenticate": "Bearer"}
        )
    try:
        payload = verify_access_token(credentials.credentials)
    except AuthenticationError as e:
        raise UnauthorizedError(str(e), headers={"WWW-Authenticate": "Bearer"}) from e
    return CurrentUser(user_id=payload.user_id, email=payload.email)
