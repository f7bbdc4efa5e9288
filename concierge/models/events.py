"""Server-sent events produced by the chat stream.

The outbound stream is a closed set of event kinds discriminated on ``type``.
Each event is written as one ``data: <json>`` line followed by a blank line.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

SSE_PREFIX = "data: "


class TextEvent(BaseModel):
    """Incremental assistant text."""

    type: Literal["text"] = "text"
    content: str


class ToolStartEvent(BaseModel):
    """A tool is about to run (UI feedback only)."""

    type: Literal["tool_start"] = "tool_start"
    tool: str


class ToolResultEvent(BaseModel):
    """Outcome of a tool call, with a human-readable summary for the widget."""

    type: Literal["tool_result"] = "tool_result"
    tool: str
    display: str = ""
    data: Any = None


class ErrorEvent(BaseModel):
    """Terminal failure; ``message`` is always safe to show the customer."""

    type: Literal["error"] = "error"
    message: str


class DoneEvent(BaseModel):
    """Terminal success."""

    type: Literal["done"] = "done"


StreamEvent = Annotated[
    TextEvent | ToolStartEvent | ToolResultEvent | ErrorEvent | DoneEvent,
    Field(discriminator="type"),
]

_stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)

TERMINAL_EVENT_TYPES = frozenset({"error", "done"})


def to_sse(event: StreamEvent) -> str:
    """Encode an event as a server-sent event frame."""
    return f"{SSE_PREFIX}{event.model_dump_json()}\n\n"


def parse_sse_line(line: str) -> StreamEvent | None:
    """Decode one ``data:`` line back into an event; other lines return None."""
    if not line.startswith(SSE_PREFIX):
        return None
    return _stream_event_adapter.validate_json(line[len(SSE_PREFIX) :])


def is_terminal(event: StreamEvent) -> bool:
    return event.type in TERMINAL_EVENT_TYPES
