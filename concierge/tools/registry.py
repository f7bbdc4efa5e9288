"""Tools registry: declares the concierge's tools and executes them."""

from collections.abc import Callable
from datetime import date
from typing import Any

from pydantic import ValidationError

from concierge.models.llm import LLMToolDefinition
from concierge.services.store import AvailabilityService, CatalogService, OrderService, StoreError
from concierge.tools.base import ToolDefinition, ToolResult
from concierge.tools.check_availability import create_check_availability_tool
from concierge.tools.lookup_order import create_lookup_order_tool
from concierge.tools.search_products import create_search_products_tool
from concierge.utils.errors import ErrorCode, get_tool_error_message
from concierge.utils.logging import get_logger

logger = get_logger(__name__)


class ToolsRegistry:
    """Registry for the concierge's tools.

    ``execute`` is the only entry point the agent loop uses. It never raises:
    every failure becomes a ``ToolResult`` the model can read and explain.
    """

    def __init__(
        self,
        catalog: CatalogService,
        availability: AvailabilityService,
        orders: OrderService,
        store_url: str,
        clock: Callable[[], date] = date.today,
    ):
        """Initialize tools registry with service dependencies.

        Args:
            catalog: Product search backend
            availability: Availability backend
            orders: Order lookup backend
            store_url: Public store URL used for product and booking links
            clock: Returns the current local date; relative dates resolve against it
        """
        self.catalog = catalog
        self.availability = availability
        self.orders = orders
        self.store_url = store_url
        self.clock = clock
        self._tools: dict[str, ToolDefinition] = {}
        self._register_default_tools()

    def _register_default_tools(self) -> None:
        tools = [
            create_search_products_tool(self.catalog, self.store_url),
            create_check_availability_tool(self.catalog, self.availability, self.store_url, self.clock),
            create_lookup_order_tool(self.orders),
        ]

        for tool in tools:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        self._tools[tool.name] = tool

    def get_tool_definitions(self) -> list[LLMToolDefinition]:
        """Get the tool schemas offered to the LLM, in registration order."""
        return [tool.to_llm_tool() for tool in self._tools.values()]

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    async def execute(self, name: str, tool_input: dict[str, Any]) -> ToolResult:
        """Validate input and run a tool.

        Args:
            name: Tool name as requested by the model
            tool_input: Raw input object from the model

        Returns:
            The tool's result, or a failed result carrying a user-safe message
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Model requested unknown tool: {name}")
            return ToolResult.failure(f"Unknown tool: {name}")

        try:
            params = tool.parse_input(tool_input)
        except ValidationError as e:
            fields = sorted({".".join(str(part) for part in error["loc"]) for error in e.errors()})
            logger.info(f"Invalid input for tool {name}: {fields}")
            message = get_tool_error_message(ErrorCode.INVALID_TOOL_INPUT)
            return ToolResult.failure(f"{message} ({', '.join(fields)})" if fields else message)

        try:
            result = await tool.handler(params)
        except StoreError as e:
            logger.error(f"Tool {name} store error: {e.code} ({e.status_code}): {e}")
            return ToolResult.failure(get_tool_error_message(e.code))
        except Exception:
            logger.exception(f"Tool {name} failed unexpectedly")
            return ToolResult.failure(get_tool_error_message(ErrorCode.UNKNOWN))

        logger.info(f"Tool {name} completed - success: {result.success}")
        return result
