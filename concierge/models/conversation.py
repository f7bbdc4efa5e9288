"""Conversation request/response data models."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """A single turn of caller-supplied conversation history."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Request model for the chat endpoint.

    ``messages`` is kept loosely typed: the widget
    re-submits its whole history on every call and malformed entries are
    dropped rather than rejected.
    """

    model_config = ConfigDict(populate_by_name=True)

    messages: list[Any]
    session_id: str | None = Field(default=None, alias="sessionId")


class ErrorResponse(BaseModel):
    """JSON error body for requests rejected before streaming starts."""

    error: bool = True
    code: str
    message: str


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
    services: dict[str, str] = Field(default_factory=dict)
