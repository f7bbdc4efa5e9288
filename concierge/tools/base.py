"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from concierge.models.llm import LLMToolDefinition


class ToolResult(BaseModel):
    """Outcome of one tool execution.

    The whole model is serialized back to the LLM as the tool result;
    ``display`` is also forwarded to the chat widget.
    """

    success: bool
    data: Any = None
    error: str | None = None
    display: str | None = None

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)


ToolHandler = Callable[[Any], Awaitable[ToolResult]]


@dataclass
class ToolDefinition:
    """Definition of a tool available to the AI assistant."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        return self.input_schema_class.model_json_schema()

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    def to_llm_tool(self) -> LLMToolDefinition:
        return LLMToolDefinition(name=self.name, description=self.description, input_schema=self.get_json_schema())
