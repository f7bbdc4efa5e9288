"""Tests for the store REST client."""

from datetime import date
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from conftest import STORE_URL

from concierge.clients.wordpress import StoreConfig, WordPressClient
from concierge.services.store import StoreError
from concierge.tools.registry import ToolsRegistry
from concierge.utils.errors import ErrorCode

ORDER_PAYLOAD = {
    "id": 5682,
    "order_number": "5682",
    "status": "shipped",
    "date_created": "2026-01-05T10:00:00",
    "line_items": [{"id": 1, "name": "Glock 19 Gen 5", "product_id": 42, "quantity": 1, "total": "84.00"}],
    "shipping": {"tracking_number": "1Z999", "carrier": "UPS", "tracking_url": None},
    "ffl": None,
    "rental_dates": {"start_date": "2026-01-20", "end_date": "2026-01-27"},
}


def _response(data, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=data)


@pytest.fixture
def client():
    return WordPressClient(StoreConfig(store_url="https://rentagun.com/", api_key="secret"))


class TestConfiguration:
    """Tests for client configuration."""
    def test_base_url_joins_plugin_prefix(self):
        """Test that the base URL includes the plugin route prefix."""
        assert StoreConfig(store_url="https://rentagun.com/").base_url == "https://rentagun.com/wp-json/rentagun/v1"

    def test_api_key_sent_as_header(self, client):
        """Test that the API key is sent in the X-API-Key header."""
        assert client._client.headers["X-API-Key"] == "secret"

    async def test_missing_api_key(self):
        """Test that a missing API key fails before any request."""
        client = WordPressClient(StoreConfig(api_key=""))
        with patch.object(client._client, "request", AsyncMock()) as mock_req:
            with pytest.raises(StoreError) as exc_info:
                await client.search(query="Glock")
            mock_req.assert_not_awaited()
        assert exc_info.value.code == ErrorCode.MISSING_API_KEY


class TestSearch:
    """Tests for product search."""
    async def test_sends_filters_as_query_params(self, client):
        """Test that filters are sent as query parameters."""
        page = {"products": [{"id": 42, "name": "Glock 19 Gen 5", "slug": "glock-19-gen-5", "available": True}], "total": 1}

        with patch.object(client._client, "request", AsyncMock(return_value=_response(page))) as mock_req:
            result = await client.search(query="Glock", category="pistols", available_only=False)

        mock_req.assert_awaited_once_with(
            "GET",
            "/products",
            params={"page": 1, "per_page": 10, "search": "Glock", "category": "pistols", "available_only": "false"},
            json=None,
        )
        assert result.total == 1
        assert result.products[0].name == "Glock 19 Gen 5"

    async def test_omits_unset_filters(self, client):
        """Test that unset filters are left out."""
        with patch.object(client._client, "request", AsyncMock(return_value=_response({"products": []}))) as mock_req:
            await client.search()
        assert mock_req.await_args.kwargs["params"] == {"page": 1, "per_page": 10}


class TestAvailability:
    """Tests for availability checks."""
    async def test_posts_iso_dates(self, client):
        """Test that dates are posted in ISO format."""
        payload = {"available": False, "next_available_date": "2026-02-03"}

        with patch.object(client._client, "request", AsyncMock(return_value=_response(payload))) as mock_req:
            result = await client.check(42, date(2026, 1, 20), date(2026, 1, 27))

        mock_req.assert_awaited_once_with(
            "POST",
            "/availability",
            params=None,
            json={"product_id": 42, "start_date": "2026-01-20", "end_date": "2026-01-27"},
        )
        assert result.available is False
        assert result.next_available_date == date(2026, 2, 3)


class TestOrderLookup:
    """Tests for order lookup."""
    async def test_found(self, client):
        """Test a found order."""
        with patch.object(client._client, "request", AsyncMock(return_value=_response({"order": ORDER_PAYLOAD}))) as mock_req:
            order = await client.lookup("5682", "customer@example.com")

        assert mock_req.await_args.kwargs["json"] == {"order_number": "5682", "email": "customer@example.com"}
        assert order.order_number == "5682"
        assert order.shipping.tracking_number == "1Z999"
        assert order.rental_dates.end_date == date(2026, 1, 27)

    async def test_order_without_booking(self, client):
        """Test that an order with no booking parses with numeric totals and null rental dates."""
        payload = {
            **ORDER_PAYLOAD,
            "status_label": "Shipped",
            "customer": {"first_name": "Sam", "last_name": "Lee", "email": "customer@example.com"},
            "line_items": [{"id": 1, "name": "Glock 19 Gen 5", "product_id": 42, "quantity": 1, "total": 84.5}],
            "rental_dates": None,
            "total": 91.25,
        }
        with patch.object(client._client, "request", AsyncMock(return_value=_response({"order": payload}))):
            order = await client.lookup("5682", "customer@example.com")

        assert order.rental_dates is None
        assert order.line_items[0].total == "84.5"

    async def test_order_without_booking_through_tool(self, client):
        """Test that the lookup tool reports missing rental dates as N/A instead of failing."""
        registry = ToolsRegistry(client, client, client, STORE_URL)
        payload = {**ORDER_PAYLOAD, "rental_dates": None}

        with patch.object(client._client, "request", AsyncMock(return_value=_response({"order": payload}))):
            result = await registry.execute("lookup_order", {"order_number": "5682", "email": "customer@example.com"})

        assert result.success is True
        assert result.data["rental_dates"] is None
        assert "**Rental Dates:** N/A to N/A" in result.display

    async def test_not_found_returns_none(self, client):
        """Test that a 404 returns None."""
        not_found = _response({"code": "order_not_found", "message": "Order not found"}, 404)
        with patch.object(client._client, "request", AsyncMock(return_value=not_found)):
            assert await client.lookup("9999", "customer@example.com") is None

    async def test_other_errors_propagate(self, client):
        """Test that other errors are raised."""
        with patch.object(client._client, "request", AsyncMock(return_value=_response({}, 500))):
            with pytest.raises(StoreError) as exc_info:
                await client.lookup("5682", "customer@example.com")
        assert exc_info.value.status_code == 500


class TestErrorMapping:
    """Tests for mapping store failures to error codes."""
    async def test_backend_code_and_message_kept(self, client):
        """Test that the backend error code and message are kept."""
        payload = {"code": "product_not_found", "message": "Product not found"}
        with patch.object(client._client, "request", AsyncMock(return_value=_response(payload, 404))):
            with pytest.raises(StoreError) as exc_info:
                await client.check(999, date(2026, 1, 20), date(2026, 1, 27))

        assert exc_info.value.code == ErrorCode.PRODUCT_NOT_FOUND
        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == "Product not found"

    async def test_non_json_error_body(self, client):
        """Test an error response without a JSON body."""
        with patch.object(client._client, "request", AsyncMock(return_value=httpx.Response(502, text="Bad Gateway"))):
            with pytest.raises(StoreError) as exc_info:
                await client.search(query="Glock")
        assert exc_info.value.code == ErrorCode.API_ERROR
        assert exc_info.value.status_code == 502

    async def test_rate_limit(self, client):
        """Test that a 429 maps to rate_limit."""
        with patch.object(client._client, "request", AsyncMock(return_value=_response({}, 429))):
            with pytest.raises(StoreError) as exc_info:
                await client.search(query="Glock")
        assert exc_info.value.code == ErrorCode.RATE_LIMIT

    @pytest.mark.parametrize("error", [httpx.ConnectError("refused"), httpx.ReadTimeout("timeout")])
    async def test_transport_failure(self, client, error):
        """Test that transport failures map to connection_error."""
        with patch.object(client._client, "request", AsyncMock(side_effect=error)):
            with pytest.raises(StoreError) as exc_info:
                await client.search(query="Glock")
        assert exc_info.value.code == ErrorCode.CONNECTION_ERROR
        assert exc_info.value.status_code == 503
