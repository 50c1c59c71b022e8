"""Database package for ORM models, sessions and record persistence."""

from .base import Base
from .session import get_engine, get_session, get_session_factory

__all__ = [
    "Base",
    "get_engine",
    "get_session",
    "get_session_factory",
]
