"""User-facing error messages.

Internal error codes never reach the customer directly; every surface that
reports a failure looks its message up here so wording stays consistent and
no exception detail leaks into the chat.
"""

from enum import StrEnum


class ErrorCode(StrEnum):
    """Error codes shared by the HTTP layer, the agent loop and the tools."""

    MISSING_API_KEY = "missing_api_key"
    INVALID_API_KEY = "invalid_api_key"
    API_ERROR = "api_error"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"

    INVALID_REQUEST = "invalid_request"
    EMPTY_MESSAGE = "empty_message"

    ORDER_NOT_FOUND = "order_not_found"
    INVALID_EMAIL = "invalid_email"
    PRODUCT_NOT_FOUND = "product_not_found"
    INVALID_DATE = "invalid_date"
    CONNECTION_ERROR = "connection_error"
    INVALID_TOOL_INPUT = "invalid_tool_input"

    UNKNOWN = "unknown"


ERROR_MESSAGES: dict[str, str] = {
    ErrorCode.MISSING_API_KEY: "I'm having trouble connecting. Please try again in a moment.",
    ErrorCode.INVALID_API_KEY: "I'm having trouble connecting. Please try again in a moment.",
    ErrorCode.API_ERROR: "I'm having trouble right now. Please try again.",
    ErrorCode.TIMEOUT: "That took too long. Please try again.",
    ErrorCode.RATE_LIMIT: "I'm getting a lot of questions right now. Please wait a moment.",
    ErrorCode.INVALID_REQUEST: "I didn't understand that request. Could you try again?",
    ErrorCode.EMPTY_MESSAGE: "Please type a message and try again.",
    ErrorCode.UNKNOWN: "Something went wrong. Please try again.",
}

# Messages returned to the model inside tool results
TOOL_ERROR_MESSAGES: dict[str, str] = {
    ErrorCode.PRODUCT_NOT_FOUND: "I couldn't find that firearm in our inventory.",
    ErrorCode.INVALID_DATE: "Those dates don't look right. Please try again.",
    ErrorCode.ORDER_NOT_FOUND: "I couldn't find that order. Please check your order number and email.",
    ErrorCode.INVALID_EMAIL: "Please provide a valid email address.",
    ErrorCode.RATE_LIMIT: "You've made too many requests. Please wait a moment and try again.",
    ErrorCode.CONNECTION_ERROR: "I'm having trouble connecting to our system. Please try again.",
    ErrorCode.MISSING_API_KEY: "There's a configuration issue. Please contact support.",
    ErrorCode.INVALID_TOOL_INPUT: "Some of the details for that request were missing or invalid.",
    ErrorCode.UNKNOWN: "Something went wrong. Please try again.",
}


def get_user_message(code: str) -> str:
    """Get the customer-facing message for a stream or HTTP error code."""
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES[ErrorCode.UNKNOWN])


def get_tool_error_message(code: str) -> str:
    """Get the message reported to the model when a tool fails with ``code``."""
    return TOOL_ERROR_MESSAGES.get(code, TOOL_ERROR_MESSAGES[ErrorCode.UNKNOWN])
