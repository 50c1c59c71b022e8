"""EventSourceResponse construction for SSE sessions."""

from sse_starlette.sse import EventSourceResponse, ServerSentEvent

from backend.app.config import Settings, get_settings
from backend.app.streaming.session import SSESession

# EventSourceResponse adds Connection: keep-alive and X-Accel-Buffering: no
SSE_HEADERS = {"Cache-Control": "no-cache, no-transform"}


def keepalive_event() -> ServerSentEvent:
    """Heartbeat comment frame `: keepalive\\n\\n`.

    The response only applies its `sep` to data frames, so the ping event
    carries its own.
    """
    return ServerSentEvent(comment="keepalive", sep="\n")


def build_sse_response(
    session: SSESession, settings: Settings | None = None
) -> EventSourceResponse:
    """Stream a session as `text/event-stream`.

    Frames are `data: <json>\\n\\n`. A `: keepalive` comment is sent every
    `sse_heartbeat_interval_s` seconds by the response's ping task, which
    stops with the stream.

    Args:
        session: Unconsumed SSE session
        settings: Settings override (for testing)

    Returns:
        EventSourceResponse wrapping `session.events()`
    """
    settings = settings or get_settings()
    return EventSourceResponse(
        session.events(),
        headers=SSE_HEADERS,
        sep="\n",
        ping=settings.sse_heartbeat_interval_s,
        ping_message_factory=keepalive_event,
    )
