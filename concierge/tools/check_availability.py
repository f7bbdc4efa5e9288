"""Availability check tool."""

from collections.abc import Callable
from datetime import date

from pydantic import BaseModel, Field

from concierge.models.store import Availability, Product
from concierge.services.dates import DateParseError, DateRange, parse_natural_date
from concierge.services.store import AvailabilityService, CatalogService, build_booking_url
from concierge.tools.base import ToolDefinition, ToolResult

MISSING_DATES = "Please specify the dates you want to rent."
UNKNOWN_PRODUCT = "I couldn't find that firearm. Could you tell me the specific name or search for it first?"


class CheckAvailabilityInput(BaseModel):
    """Input schema for availability checks."""

    dates: str | None = Field(
        default=None,
        max_length=200,
        description='Natural language date expression like "next week", "January 20-27", "tomorrow for 7 days"',
    )
    start_date: str | None = Field(
        default=None, description="Start date in YYYY-MM-DD format (if not using natural language)"
    )
    end_date: str | None = Field(default=None, description="End date in YYYY-MM-DD format (if not using natural language)")
    product_id: int | None = Field(default=None, description="The product ID to check")
    product_name: str | None = Field(
        default=None, max_length=200, description="Product name to search for if product_id is not known"
    )


def _resolve_dates(params: CheckAvailabilityInput, today: date) -> DateRange | None:
    if params.dates:
        return parse_natural_date(params.dates, today)
    if params.start_date and params.end_date:
        return parse_natural_date(f"{params.start_date} to {params.end_date}", today)
    return None


def _format_result(availability: Availability, product: Product | None, date_range: DateRange) -> str:
    product_name = product.name if product else "This firearm"
    start_date, end_date = date_range.as_iso()
    window = f"{start_date} to {end_date}"

    if availability.available:
        return f"✅ **{product_name}** is available for {window}!\n\nReady to book? I can help you complete your reservation."

    if availability.next_available_date:
        return (
            f"❌ **{product_name}** is not available for {window}.\n\n"
            f"📅 Next available: **{availability.next_available_date.isoformat()}**\n\n"
            "Would you like me to check those dates instead, or show you similar firearms that are available now?"
        )

    return f"❌ **{product_name}** is not available for {window}.\n\nWould you like me to show you similar firearms that are available?"


def create_check_availability_tool(
    catalog: CatalogService,
    availability_service: AvailabilityService,
    store_url: str,
    clock: Callable[[], date],
) -> ToolDefinition:
    async def find_product(product_id: int | None, product_name: str | None) -> Product | None:
        if product_id is not None:
            page = await catalog.search(query=str(product_id), available_only=False)
            return next((product for product in page.products if product.id == product_id), None)
        if product_name:
            page = await catalog.search(query=product_name, available_only=False)
            return page.products[0] if page.products else None
        return None

    async def check_availability_handler(params: CheckAvailabilityInput) -> ToolResult:
        try:
            date_range = _resolve_dates(params, clock())
        except DateParseError as e:
            return ToolResult.failure(e.message)
        if date_range is None:
            return ToolResult.failure(MISSING_DATES)

        product = await find_product(params.product_id, params.product_name)
        product_id = params.product_id if params.product_id is not None else (product.id if product else None)
        if product_id is None:
            return ToolResult.failure(UNKNOWN_PRODUCT)

        availability = await availability_service.check(product_id, date_range.start_date, date_range.end_date)
        start_date, end_date = date_range.as_iso()

        return ToolResult(
            success=True,
            data={
                "available": availability.available,
                "product_id": product_id,
                "product_name": product.name if product else None,
                "start_date": start_date,
                "end_date": end_date,
                "next_available_date": (
                    availability.next_available_date.isoformat() if availability.next_available_date else None
                ),
                "booking_url": build_booking_url(store_url, product, date_range) if product else None,
            },
            display=_format_result(availability, product, date_range),
        )

    return ToolDefinition(
        name="check_availability",
        description=(
            "Check if a specific firearm is available for rental on given dates. Use this when a customer asks "
            "about availability for specific dates. Pass the customer's own date wording in `dates`."
        ),
        input_schema_class=CheckAvailabilityInput,
        handler=check_availability_handler,
    )
