"""Store data models (products, availability, orders).

These mirror the payloads of the store's REST plugin. Unknown fields are
ignored so backend additions don't break parsing.
"""

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ProductCategorySlug = Literal["pistols", "rifles", "shotguns", "handguns", "revolvers"]

OrderStatus = Literal[
    "pending",
    "processing",
    "shipped",
    "at-ffl",
    "with-customer",
    "return-shipped",
    "completed",
    "cancelled",
    "refunded",
]


class StoreModel(BaseModel):
    """Base for store payloads; money fields arrive as strings or numbers."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class ProductImage(StoreModel):
    id: int = 0
    src: str
    alt: str = ""


class ProductCategory(StoreModel):
    id: int = 0
    name: str
    slug: str


class Product(StoreModel):
    """A rentable firearm."""

    id: int
    name: str
    slug: str
    price: str = "0"
    regular_price: str = ""
    images: list[ProductImage] = Field(default_factory=list)
    categories: list[ProductCategory] = Field(default_factory=list)
    available: bool = False
    next_available_date: date | None = None

    @property
    def image_url(self) -> str | None:
        return self.images[0].src if self.images else None

    @property
    def category_slugs(self) -> list[str]:
        return [category.slug for category in self.categories]

    @property
    def daily_rate(self) -> float:
        """Daily rental rate: 2% of the retail price."""
        try:
            price = float(self.regular_price or self.price)
        except ValueError:
            return 0.0
        return round(price * 0.02, 2)


class ProductPage(StoreModel):
    """One page of catalog search results."""

    products: list[Product] = Field(default_factory=list)
    total: int = 0
    pages: int = 1
    page: int = 1
    per_page: int = 10


class Availability(StoreModel):
    """Availability of one product for a date window."""

    available: bool
    next_available_date: date | None = None


class OrderLineItem(StoreModel):
    id: int = 0
    name: str
    product_id: int = 0
    quantity: int = 1
    total: str = "0"


class ShippingInfo(StoreModel):
    tracking_number: str | None = None
    tracking_url: str | None = None
    carrier: str | None = None


class FFLDealer(StoreModel):
    """The licensed dealer where the customer picks up the firearm."""

    name: str
    address: str
    city: str
    state: str
    zip: str
    phone: str = ""


class RentalDates(StoreModel):
    start_date: date | None = None
    end_date: date | None = None


class Order(StoreModel):
    """A rental order as returned by a verified lookup."""

    id: int = 0
    order_number: str
    status: OrderStatus | str
    date_created: str = ""
    line_items: list[OrderLineItem] = Field(default_factory=list)
    shipping: ShippingInfo = Field(default_factory=ShippingInfo)
    ffl: FFLDealer | None = None
    rental_dates: RentalDates | None = None
