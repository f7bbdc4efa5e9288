"""API endpoints for the rental concierge."""

from datetime import UTC, datetime
from json import JSONDecodeError
from typing import Annotated

from cuid2 import cuid_wrapper
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from concierge import __version__
from concierge.models.conversation import ChatRequest, ErrorResponse, HealthResponse
from concierge.services.conversation import ConversationService
from concierge.services.sanitize import sanitize_messages
from concierge.utils.errors import ErrorCode, get_user_message
from concierge.utils.logging import bind_session_id, get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api")

cuid = cuid_wrapper()

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}


def get_conversation_service(request: Request) -> ConversationService:
    """Conversation service built during application startup."""
    return request.app.state.conversation_service


def error_response(code: ErrorCode, status_code: int) -> JSONResponse:
    body = ErrorResponse(code=code, message=get_user_message(code))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.post("/chat", tags=["Chat"], responses={400: {"model": ErrorResponse}})
async def chat(
    request: Request,
    service: Annotated[ConversationService, Depends(get_conversation_service)],
    x_session_id: Annotated[str | None, Header()] = None,
):
    """Stream the concierge's reply as server-sent events.

    The body carries the full conversation history; nothing is stored
    server-side between requests.
    """
    try:
        chat_request = ChatRequest.model_validate(await request.json())
    except (JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        logger.warning(f"Rejected malformed chat request: {type(e).__name__}")
        return error_response(ErrorCode.INVALID_REQUEST, 400)

    session_id = chat_request.session_id or x_session_id or cuid()
    bind_session_id(session_id)

    messages = sanitize_messages(chat_request.messages)
    if not messages:
        logger.info(f"Rejected chat request with no usable messages")
        return error_response(ErrorCode.EMPTY_MESSAGE, 400)

    return StreamingResponse(
        service.stream_response(messages, session_id),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Session-Id": session_id},
    )


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
        services=getattr(request.app.state, "service_status", {}),
    )
