"""Product search tool."""

from typing import Any

from pydantic import BaseModel, Field

from concierge.models.store import Product, ProductCategorySlug
from concierge.services.store import CatalogService, build_booking_url
from concierge.tools.base import ToolDefinition, ToolResult

MAX_RESULTS = 6
SEARCH_PAGE_SIZE = 10

NO_AVAILABLE_MATCHES = (
    "I couldn't find any available firearms matching that search. "
    "Would you like me to show all firearms, including those currently rented out?"
)
NO_MATCHES = "I couldn't find any firearms matching that search. Try different keywords or browse by category."


class SearchProductsInput(BaseModel):
    """Input schema for product search."""

    query: str | None = Field(
        default=None,
        max_length=200,
        description='Search term (gun name, manufacturer, model). Examples: "Glock 19", "Desert Eagle", "9mm pistol"',
    )
    category: ProductCategorySlug | None = Field(default=None, description="Filter by firearm category")
    available_only: bool = Field(
        default=True,
        description="Only show firearms that are currently available. Default true.",
    )


def _summarize(product: Product, store_url: str) -> dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "price": product.price,
        "daily_rate": product.daily_rate,
        "available": product.available,
        "next_available_date": product.next_available_date.isoformat() if product.next_available_date else None,
        "image": product.image_url,
        "url": build_booking_url(store_url, product),
        "categories": [category.name for category in product.categories],
    }


def _format_results(products: list[Product]) -> str:
    lines = []
    for index, product in enumerate(products, start=1):
        if product.available:
            availability = "✅ Available now"
        elif product.next_available_date:
            availability = f"📅 Next available: {product.next_available_date.isoformat()}"
        else:
            availability = "⏳ Check back soon"
        lines.append(f"{index}. **{product.name}** - ${product.daily_rate:.2f}/day\n   {availability}")

    return f"Found {len(products)} firearms:\n\n" + "\n\n".join(lines)


def create_search_products_tool(catalog: CatalogService, store_url: str) -> ToolDefinition:
    async def search_products_handler(params: SearchProductsInput) -> ToolResult:
        if params.query:
            # Text search covers rented-out items too; availability is filtered below
            page = await catalog.search(query=params.query, available_only=False, per_page=SEARCH_PAGE_SIZE)
        else:
            page = await catalog.search(
                category=params.category, available_only=params.available_only, per_page=SEARCH_PAGE_SIZE
            )

        # Backend matching is approximate, so both filters are re-applied here
        products = page.products
        if params.query and params.category:
            products = [product for product in products if params.category in product.category_slugs]
        if params.available_only:
            products = [product for product in products if product.available]
        products = products[:MAX_RESULTS]

        if not products:
            return ToolResult(
                success=True,
                data={"products": []},
                display=NO_AVAILABLE_MATCHES if params.available_only else NO_MATCHES,
            )

        return ToolResult(
            success=True,
            data={"products": [_summarize(product, store_url) for product in products], "total": len(products)},
            display=_format_results(products),
        )

    return ToolDefinition(
        name="search_products",
        description=(
            "Search for firearms in the Rentagun rental inventory. Use this when a customer asks about "
            "specific guns, categories, or wants to browse available rentals."
        ),
        input_schema_class=SearchProductsInput,
        handler=search_products_handler,
    )
