"""Order lookup tool."""

from pydantic import BaseModel, Field

from concierge.models.store import Order
from concierge.services.sanitize import is_valid_email, sanitize_order_number
from concierge.services.store import OrderService
from concierge.tools.base import ToolDefinition, ToolResult
from concierge.utils.errors import ErrorCode, get_tool_error_message

STATUS_EMOJI = {
    "pending": "⏳",
    "processing": "📋",
    "shipped": "📦",
    "at-ffl": "🏪",
    "with-customer": "✅",
    "return-shipped": "↩️",
    "completed": "✅",
    "cancelled": "❌",
    "refunded": "💰",
}


class LookupOrderInput(BaseModel):
    """Input schema for order lookup. Both fields are required for verification."""

    order_number: str = Field(
        ..., min_length=1, max_length=50, description='The order number (e.g., "5682", "RAG-5682")'
    )
    email: str = Field(
        ..., min_length=3, max_length=254, description="Email address used for the order (for verification)"
    )


def _format_order(order: Order) -> str:
    items = ", ".join(item.name for item in order.line_items)
    # Orders without a booking carry no rental dates
    rental = order.rental_dates
    start = rental.start_date.isoformat() if rental and rental.start_date else "N/A"
    end = rental.end_date.isoformat() if rental and rental.end_date else "N/A"

    result = (
        f"{STATUS_EMOJI.get(order.status, '📋')} **Order #{order.order_number}**\n\n"
        f"**Status:** {order.status}\n"
        f"**Items:** {items}\n"
        f"**Rental Dates:** {start} to {end}"
    )

    if order.shipping.tracking_number:
        result += f"\n\n📦 **Tracking:** [{order.shipping.tracking_number}]({order.shipping.tracking_url or ''})"

    if order.ffl:
        ffl = order.ffl
        result += f"\n\n📍 **Pickup Location:**\n{ffl.name}\n{ffl.address}\n{ffl.city}, {ffl.state} {ffl.zip}"
        if ffl.phone:
            result += f"\n📞 {ffl.phone}"

    return result


def create_lookup_order_tool(orders: OrderService) -> ToolDefinition:
    async def lookup_order_handler(params: LookupOrderInput) -> ToolResult:
        order_number = sanitize_order_number(params.order_number)
        email = params.email.strip().lower()

        if not is_valid_email(email):
            return ToolResult.failure(get_tool_error_message(ErrorCode.INVALID_EMAIL))

        order = await orders.lookup(order_number, email) if order_number else None
        if order is None:
            # Same answer whether the order is missing or the email doesn't match
            return ToolResult.failure(get_tool_error_message(ErrorCode.ORDER_NOT_FOUND))

        return ToolResult(success=True, data=order.model_dump(mode="json"), display=_format_order(order))

    return ToolDefinition(
        name="lookup_order",
        description=(
            "Look up a rental order status. Requires both order number AND email address for verification. "
            "Use when customer asks about their order, tracking, or shipment."
        ),
        input_schema_class=LookupOrderInput,
        handler=lookup_order_handler,
    )
