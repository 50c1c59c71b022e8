"""Security utilities for authentication and response hardening."""

from .jwt import AuthenticationError, TokenPayload, verify_access_token
from .middleware import SecurityHeadersMiddleware

__all__ = [
    "AuthenticationError",
    "SecurityHeadersMiddleware",
    "TokenPayload",
    "verify_access_token",
]
