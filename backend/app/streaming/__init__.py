"""Server-Sent Events streaming of orchestrator runs."""

from backend.app.streaming.events import (
    CompletionEvent,
    ErrorData,
    ErrorEvent,
    ProgressEvent,
    SSEEvent,
    WireModel,
    is_terminal,
    utc_timestamp,
)
from backend.app.streaming.response import build_sse_response, keepalive_event
from backend.app.streaming.session import (
    DeadlineExceededError,
    EventSink,
    Orchestrator,
    SessionFinalizer,
    SessionState,
    SSESession,
)
from backend.app.streaming.tasks import drain_detached, spawn_detached

__all__ = [
    "CompletionEvent",
    "DeadlineExceededError",
    "ErrorData",
    "ErrorEvent",
    "EventSink",
    "Orchestrator",
    "ProgressEvent",
    "SSEEvent",
    "SSESession",
    "SessionFinalizer",
    "SessionState",
    "WireModel",
    "build_sse_response",
    "drain_detached",
    "is_terminal",
    "keepalive_event",
    "spawn_detached",
    "utc_timestamp",
]
