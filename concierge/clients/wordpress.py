"""HTTP client for the store's WordPress REST plugin.

All endpoints live under ``{store_url}/wp-json/rentagun/v1`` and require the
plugin's API key in the ``X-API-Key`` header.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx

from concierge.models.store import Availability, Order, ProductPage
from concierge.services.store import StoreError
from concierge.utils.errors import ErrorCode
from concierge.utils.logging import get_logger

logger = get_logger(__name__)

API_PREFIX = "/wp-json/rentagun/v1"


@dataclass
class StoreConfig:
    """Configuration for the store REST client."""

    store_url: str = "https://rentagun.com"
    api_key: str = ""
    timeout_seconds: float = 10.0

    @property
    def base_url(self) -> str:
        return f"{self.store_url.rstrip('/')}{API_PREFIX}"


class WordPressClient:
    """Async client implementing the catalog, availability and order protocols.

    No retries: a failed call surfaces as ``StoreError`` and the tool layer
    turns it into a user-safe message.
    """

    def __init__(self, config: StoreConfig | None = None, client: httpx.AsyncClient | None = None):
        self.config = config or StoreConfig()
        self._client = client or httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={"Content-Type": "application/json", "X-API-Key": self.config.api_key},
            timeout=self.config.timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute a request and decode the JSON body.

        Raises:
            StoreError: On a missing key, transport failure, or non-2xx status
        """
        if not self.config.api_key:
            raise StoreError("Store API key not configured", code=ErrorCode.MISSING_API_KEY, status_code=500)

        try:
            response = await self._client.request(method, path, params=params, json=json_body)
        except httpx.HTTPError as e:
            logger.error(f"Store request {method} {path} failed: {type(e).__name__}: {e}")
            raise StoreError("Failed to connect to store API", code=ErrorCode.CONNECTION_ERROR, status_code=503) from e

        if response.status_code == 429:
            raise StoreError("Store API rate limit exceeded", code=ErrorCode.RATE_LIMIT, status_code=429)

        if response.is_error:
            payload = self._error_payload(response)
            raise StoreError(
                payload.get("message") or f"API request failed: {response.status_code}",
                code=payload.get("code") or ErrorCode.API_ERROR,
                status_code=response.status_code,
            )

        return response.json()

    def _error_payload(self, response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    async def search(
        self,
        query: str | None = None,
        category: str | None = None,
        available_only: bool | None = None,
        page: int = 1,
        per_page: int = 10,
    ) -> ProductPage:
        params: dict[str, Any] = {"page": page, "per_page": per_page}
        if query:
            params["search"] = query
        if category:
            params["category"] = category
        if available_only is not None:
            params["available_only"] = "true" if available_only else "false"

        data = await self._request("GET", "/products", params=params)
        return ProductPage.model_validate(data)

    async def check(self, product_id: int, start_date: date, end_date: date) -> Availability:
        data = await self._request(
            "POST",
            "/availability",
            json_body={
                "product_id": product_id,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )
        return Availability.model_validate(data)

    async def lookup(self, order_number: str, email: str) -> Order | None:
        """Look up an order; the plugin answers 404 for unknown orders and email mismatches alike."""
        try:
            data = await self._request("POST", "/orders/lookup", json_body={"order_number": order_number, "email": email})
        except StoreError as e:
            if e.status_code == 404:
                return None
            raise
        return Order.model_validate(data["order"])
