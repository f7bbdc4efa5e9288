"""Input sanitization for chat messages and tool arguments."""

import re
from typing import Any

from concierge.models.conversation import ChatMessage

MAX_MESSAGE_LENGTH = 10000
MAX_MESSAGES = 50
MAX_ORDER_NUMBER_LENGTH = 20

_SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]*>")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ORDER_PREFIX = re.compile(r"^RAG-", re.IGNORECASE)
_ORDER_DISALLOWED = re.compile(r"[^a-zA-Z0-9-]")


def sanitize_message(content: Any) -> str:
    """Clean one message body: cap length, drop NUL bytes and HTML markup."""
    if not isinstance(content, str):
        return ""

    sanitized = content[:MAX_MESSAGE_LENGTH].replace("\0", "")
    sanitized = _SCRIPT_TAG.sub("", sanitized)
    sanitized = _HTML_TAG.sub("", sanitized)
    return sanitized.strip()


def sanitize_messages(messages: list[Any]) -> list[ChatMessage]:
    """Validate and clean caller-supplied history.

    Keeps the most recent ``MAX_MESSAGES`` entries, skips anything that isn't
    a ``{role, content}`` object with string fields, coerces unknown roles to
    ``user`` and drops messages left empty after cleaning. The result always
    starts with a user turn.
    """
    cleaned: list[ChatMessage] = []
    for raw in messages[-MAX_MESSAGES:]:
        if not isinstance(raw, dict):
            continue
        role, content = raw.get("role"), raw.get("content")
        if not isinstance(role, str) or not isinstance(content, str):
            continue

        content = sanitize_message(content)
        if not content:
            continue
        cleaned.append(ChatMessage(role="assistant" if role == "assistant" else "user", content=content))

    while cleaned and cleaned[0].role == "assistant":
        cleaned.pop(0)
    return cleaned


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL.match(email))


def sanitize_order_number(order_number: str) -> str:
    """Normalize an order number: strip the ``RAG-`` prefix and anything but letters, digits and dashes."""
    stripped = _ORDER_PREFIX.sub("", order_number.strip())
    return _ORDER_DISALLOWED.sub("", stripped)[:MAX_ORDER_NUMBER_LENGTH]
