"""Health check for infrastructure status."""

import logging
from typing import Literal

import redis
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

CheckStatus = Literal["ok", "down"]


class HealthStatus(BaseModel):
    """Health check response."""

    status: CheckStatus
    checks: dict[str, CheckStatus]


def check_database(session_factory: sessionmaker[Session]) -> CheckStatus:
    try:
        with session_factory() as session:
            session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        return "down"
    return "ok"


def check_redis(redis_url: str, timeout_seconds: float = 2.0) -> CheckStatus:
    try:
        client = redis.from_url(
            redis_url, socket_connect_timeout=timeout_seconds, socket_timeout=timeout_seconds
        )
        client.ping()
    except redis.RedisError:
        logger.warning("Redis health check failed", exc_info=True)
        return "down"
    return "ok"


async def get_health(
    session_factory: sessionmaker[Session], redis_url: str
) -> HealthStatus:
    """
    Check health of core infrastructure components.

    Checks:
    - Database: Attempts to execute SELECT 1
    - Redis: Attempts to PING

    Returns:
        HealthStatus with overall status and individual check results
    """
    checks: dict[str, CheckStatus] = {
        "db": await run_in_threadpool(check_database, session_factory),
        "redis": await run_in_threadpool(check_redis, redis_url),
    }

    # Overall status - down if any check is down
    overall: CheckStatus = (
        "ok" if all(status == "ok" for status in checks.values()) else "down"
    )
    return HealthStatus(status=overall, checks=checks)
