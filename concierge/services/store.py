"""Store service interfaces and the in-memory implementation.

The agent's tools depend only on the three protocols below. Production uses
the WordPress REST client (``concierge.clients.wordpress``); development and
tests use ``InMemoryStore``.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Protocol
from urllib.parse import urlencode

from concierge.models.store import (
    Availability,
    FFLDealer,
    Order,
    OrderLineItem,
    Product,
    ProductCategory,
    ProductImage,
    ProductPage,
    RentalDates,
    ShippingInfo,
)
from concierge.services.dates import DateRange
from concierge.utils.errors import ErrorCode


class StoreError(Exception):
    """Raised when a store backend call fails.

    ``code`` is one of the ``ErrorCode`` values (or a code reported by the
    backend) and selects the message the customer eventually sees.
    """

    def __init__(self, message: str, code: str = ErrorCode.API_ERROR, status_code: int = 500):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class CatalogService(Protocol):
    """Interface for product catalog search."""

    async def search(
        self,
        query: str | None = None,
        category: str | None = None,
        available_only: bool | None = None,
        page: int = 1,
        per_page: int = 10,
    ) -> ProductPage:
        """Search the catalog.

        Matching is approximate: callers that need exact category or
        availability semantics must re-check the returned items.

        Args:
            query: Free-text search (name, manufacturer, model, or product id)
            category: Category slug to filter by
            available_only: Only return products that can be rented now
            page: 1-based page number
            per_page: Page size

        Returns:
            One page of matching products
        """
        ...


class AvailabilityService(Protocol):
    """Interface for date-bounded availability checks."""

    async def check(self, product_id: int, start_date: date, end_date: date) -> Availability:
        """Check whether a product can be rented for an inclusive date window."""
        ...


class OrderService(Protocol):
    """Interface for verified order lookup."""

    async def lookup(self, order_number: str, email: str) -> Order | None:
        """Look up an order by number and the email used to place it.

        Implementations must return ``None`` both when the order doesn't exist
        and when it exists under a different email, so callers can't discover
        valid order numbers.
        """
        ...


def build_booking_url(store_url: str, product: Product, date_range: DateRange | None = None) -> str:
    """Build the product page URL, pre-filling rental dates when known."""
    url = f"{store_url.rstrip('/')}/product/{product.slug}/"
    if date_range is None:
        return url
    start_date, end_date = date_range.as_iso()
    return f"{url}?{urlencode({'start_date': start_date, 'end_date': end_date})}"


@dataclass
class _StoredOrder:
    order: Order
    email: str


@dataclass
class InMemoryStore:
    """In-memory store implementing all three store protocols.

    Uses a small mock inventory. Bookings are inclusive date windows per
    product id.
    """

    products: list[Product] = field(default_factory=lambda: _mock_products())
    bookings: dict[int, list[tuple[date, date]]] = field(default_factory=dict)
    orders: list[_StoredOrder] = field(default_factory=lambda: _mock_orders())

    async def search(
        self,
        query: str | None = None,
        category: str | None = None,
        available_only: bool | None = None,
        page: int = 1,
        per_page: int = 10,
    ) -> ProductPage:
        """Search products by name words or id."""
        matches = [product for product in self.products if self._matches(product, query)]
        if category:
            matches = [product for product in matches if category in product.category_slugs]
        if available_only:
            matches = [product for product in matches if product.available]

        offset = (max(page, 1) - 1) * per_page
        pages = max(1, -(-len(matches) // per_page))
        return ProductPage(
            products=matches[offset : offset + per_page],
            total=len(matches),
            pages=pages,
            page=page,
            per_page=per_page,
        )

    async def check(self, product_id: int, start_date: date, end_date: date) -> Availability:
        """Check a window against the product's bookings."""
        if not any(product.id == product_id for product in self.products):
            raise StoreError(f"Product {product_id} not found", code=ErrorCode.PRODUCT_NOT_FOUND, status_code=404)

        bookings = self.bookings.get(product_id, [])
        length = (end_date - start_date).days + 1
        if not self._conflicts(bookings, start_date, end_date):
            return Availability(available=True)

        return Availability(available=False, next_available_date=self._next_free_start(bookings, start_date, length))

    async def lookup(self, order_number: str, email: str) -> Order | None:
        """Find an order; wrong email and unknown number look the same."""
        normalized_email = email.strip().lower()
        for stored in self.orders:
            if stored.order.order_number == order_number and stored.email == normalized_email:
                return stored.order
        return None

    def add_booking(self, product_id: int, start_date: date, end_date: date) -> None:
        """Reserve a window for a product."""
        self.bookings.setdefault(product_id, []).append((start_date, end_date))

    def _matches(self, product: Product, query: str | None) -> bool:
        if not query:
            return True
        query = query.strip().lower()
        if query == str(product.id):
            return True
        name = product.name.lower()
        return all(word in name for word in query.split())

    def _conflicts(self, bookings: list[tuple[date, date]], start: date, end: date) -> list[tuple[date, date]]:
        return [booking for booking in bookings if booking[0] <= end and start <= booking[1]]

    def _next_free_start(self, bookings: list[tuple[date, date]], start: date, length: int) -> date:
        """Earliest start on or after ``start`` where a window of ``length`` days is free."""
        candidate = start
        while True:
            clashes = self._conflicts(bookings, candidate, candidate + timedelta(days=length - 1))
            if not clashes:
                return candidate
            candidate = max(booking[1] for booking in clashes) + timedelta(days=1)


def _category(slug: str) -> ProductCategory:
    return ProductCategory(name=slug.title(), slug=slug)


def _mock_products() -> list[Product]:
    """Create mock inventory for development and testing."""
    return [
        Product(
            id=42,
            name="Glock 19 Gen 5",
            slug="glock-19-gen-5",
            price="599.99",
            regular_price="599.99",
            images=[ProductImage(src="https://rentagun.com/images/glock-19.jpg", alt="Glock 19")],
            categories=[_category("pistols"), _category("handguns")],
            available=True,
        ),
        Product(
            id=51,
            name="Sig Sauer P365",
            slug="sig-sauer-p365",
            price="549.99",
            regular_price="549.99",
            images=[ProductImage(src="https://rentagun.com/images/p365.jpg", alt="Sig Sauer P365")],
            categories=[_category("pistols"), _category("handguns")],
            available=False,
            next_available_date=date(2026, 2, 3),
        ),
        Product(
            id=63,
            name="Desert Eagle .50 AE",
            slug="desert-eagle-50-ae",
            price="1999.00",
            regular_price="1999.00",
            categories=[_category("pistols"), _category("handguns")],
            available=True,
        ),
        Product(
            id=77,
            name="Remington 870 Express",
            slug="remington-870-express",
            price="449.00",
            regular_price="449.00",
            categories=[_category("shotguns")],
            available=True,
        ),
        Product(
            id=88,
            name="Smith & Wesson 686 Revolver",
            slug="smith-wesson-686",
            price="899.00",
            regular_price="899.00",
            categories=[_category("revolvers"), _category("handguns")],
            available=False,
        ),
    ]


def _mock_orders() -> list[_StoredOrder]:
    """Create mock orders for development and testing."""
    return [
        _StoredOrder(
            email="customer@example.com",
            order=Order(
                id=5682,
                order_number="5682",
                status="at-ffl",
                date_created="2026-01-05T14:22:00",
                line_items=[OrderLineItem(id=1, name="Glock 19 Gen 5", product_id=42, total="83.99")],
                shipping=ShippingInfo(
                    tracking_number="1Z999AA10123456784",
                    tracking_url="https://www.ups.com/track?tracknum=1Z999AA10123456784",
                    carrier="UPS",
                ),
                ffl=FFLDealer(
                    name="Lone Star Firearms",
                    address="123 Main St",
                    city="Austin",
                    state="TX",
                    zip="78701",
                    phone="512-555-0100",
                ),
                rental_dates=RentalDates(start_date=date(2026, 1, 12), end_date=date(2026, 1, 18)),
            ),
        ),
    ]
