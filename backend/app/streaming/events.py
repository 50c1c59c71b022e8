"""Base SSE event types.

Every event is `{type, timestamp, data}` on the wire. Concrete events pick
one of three families so the session can tell progress from terminal
events without inspecting `type` strings.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision, e.g. 2025-01-31T12:00:00.000Z."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WireModel(BaseModel):
    """Payload model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SSEEvent(BaseModel):
    """Base event; subclasses narrow `type` to a Literal and type `data`."""

    type: str
    timestamp: str = Field(default_factory=utc_timestamp)
    data: Any

    def to_json(self) -> str:
        """Serialize for a `data:` frame."""
        return self.model_dump_json(by_alias=True)


class ProgressEvent(SSEEvent):
    """Intermediate event relayed while the orchestrator runs."""


class CompletionEvent(SSEEvent):
    """Terminal event for a run that resolved."""


class ErrorData(WireModel):
    message: str
    code: str


class ErrorEvent(SSEEvent):
    """Terminal event for a run that raised or timed out."""

    data: ErrorData


TERMINAL_EVENT_TYPES = (CompletionEvent, ErrorEvent)


def is_terminal(event: SSEEvent) -> bool:
    return isinstance(event, TERMINAL_EVENT_TYPES)
