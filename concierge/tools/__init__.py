"""Tools for the rental concierge."""

from concierge.tools.base import ToolDefinition, ToolResult
from concierge.tools.registry import ToolsRegistry

__all__ = ["ToolDefinition", "ToolResult", "ToolsRegistry"]
