"""Application error taxonomy and its HTTP rendering."""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base error rendered as JSON `{"error": message, ...extra}`."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        extra: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra or {}
        self.headers = headers or {}

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class RateLimitExceededError(AppError):
    """Too many requests within the sliding window."""

    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__(
            "Too many requests", headers={"Retry-After": str(retry_after_seconds)}
        )
        self.retry_after_seconds = retry_after_seconds


class QuotaExceededError(AppError):
    """Monthly analysis quota used up."""

    status_code = 403
    code = "QUOTA_EXCEEDED"

    def __init__(self, *, limit: int, plan: str) -> None:
        super().__init__(
            "Quota exceeded", extra={"remaining": 0, "limit": limit, "plan": plan}
        )


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(
        self, message: str = "Unauthorized", *, headers: dict[str, str] | None = None
    ) -> None:
        super().__init__(message, headers=headers)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)


class ValidationFailedError(AppError):
    status_code = 400
    code = "INVALID_INPUT"


class PersistenceError(AppError):
    """A record required before streaming could not be written."""

    status_code = 500
    code = "PERSISTENCE_ERROR"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            extra={"path": request.url.path, "code": exc.code, "error": exc.message},
        )
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_body(), headers=exc.headers
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures as 400 with the first message."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return JSONResponse(status_code=400, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Install the AppError and validation handlers on the app."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
