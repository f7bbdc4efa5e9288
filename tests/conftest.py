"""Shared fixtures and fakes for the concierge tests."""

from collections.abc import AsyncIterator
from datetime import date
from typing import TypeVar

import pytest

from concierge.models.llm import CompletionEvent, LLMMessage, LLMToolDefinition
from concierge.services.store import InMemoryStore
from concierge.tools.registry import ToolsRegistry

# A Thursday
TODAY = date(2026, 1, 15)
STORE_URL = "https://rentagun.com"


class FakeCompletionClient:
    """Completion client that replays scripted turns.

    Each turn is a list of completion events, or an exception to raise after
    yielding nothing. The last turn repeats once the script runs out.
    """

    def __init__(self, turns: list[list[CompletionEvent] | Exception]):
        self.turns = turns
        self.calls: list[list[LLMMessage]] = []
        self.tools: list[LLMToolDefinition] | None = None

    async def stream(
        self,
        messages: list[LLMMessage],
        system_prompt: str,
        tools: list[LLMToolDefinition] | None = None,
    ) -> AsyncIterator[CompletionEvent]:
        self.calls.append(list(messages))
        self.tools = tools
        turn = self.turns[min(len(self.calls) - 1, len(self.turns) - 1)]
        if isinstance(turn, Exception):
            raise turn
        for event in turn:
            if isinstance(event, Exception):
                raise event
            yield event


T = TypeVar("T")


async def collect(events: AsyncIterator[T]) -> list[T]:
    return [event async for event in events]


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def registry(store: InMemoryStore) -> ToolsRegistry:
    return ToolsRegistry(catalog=store, availability=store, orders=store, store_url=STORE_URL, clock=lambda: TODAY)
