"""Agentic loop: streams model output, runs requested tools, and feeds results back."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

from concierge.clients.anthropic import CompletionError
from concierge.models.events import DoneEvent, ErrorEvent, StreamEvent, TextEvent, ToolResultEvent, ToolStartEvent
from concierge.models.llm import (
    CompletionEvent,
    CompletionStop,
    ContentBlock,
    LLMMessage,
    LLMToolDefinition,
    LLMUsage,
    TextDelta,
    ToolResultBlock,
    ToolUseBlock,
)
from concierge.tools.base import ToolResult
from concierge.utils.errors import ErrorCode, get_user_message
from concierge.utils.logging import bind_session_id, get_logger

logger = get_logger(__name__)

MAX_ITERATIONS = 5


class CompletionClient(Protocol):
    """Streaming completion provider."""

    def stream(
        self,
        messages: list[LLMMessage],
        system_prompt: str,
        tools: list[LLMToolDefinition] | None = None,
    ) -> AsyncIterator[CompletionEvent]: ...


class ToolExecutor(Protocol):
    """Runs tools by name; ``execute`` must not raise."""

    def get_tool_definitions(self) -> list[LLMToolDefinition]: ...

    async def execute(self, name: str, tool_input: dict[str, Any]) -> ToolResult: ...


class LoopState(StrEnum):
    AWAITING_MODEL = "awaiting_model"
    MODEL_STREAMING = "model_streaming"
    TOOL_REQUESTED = "tool_requested"
    TOOL_EXECUTING = "tool_executing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AgentRun:
    """State of one agent run; lives for a single chat request.

    ``messages`` starts as the caller's history and only ever grows.
    """

    messages: list[LLMMessage]
    system_prompt: str
    session_id: str = ""
    state: LoopState = LoopState.AWAITING_MODEL
    turns: int = 0
    usage: LLMUsage = field(default_factory=LLMUsage)


class AgentLoop:
    """Drives the model/tool round-trips for a run and emits stream events.

    Every run ends with exactly one ``DoneEvent`` or ``ErrorEvent``, unless the
    consumer stops iterating first, in which case nothing more is emitted and
    in-flight tools are cancelled.
    """

    def __init__(self, client: CompletionClient, executor: ToolExecutor, max_iterations: int = MAX_ITERATIONS):
        self.client = client
        self.executor = executor
        self.max_iterations = max_iterations

    async def run(self, run: AgentRun) -> AsyncIterator[StreamEvent]:
        """Execute the loop, yielding events as they happen.

        Args:
            run: Seeded run; its ``messages``, ``state``, ``turns`` and ``usage`` are updated in place

        Yields:
            Text deltas, tool start/result pairs, then one terminal event
        """
        tools = self.executor.get_tool_definitions()
        pending: list[asyncio.Task[ToolResult]] = []
        if run.session_id:
            bind_session_id(run.session_id)

        logger.info(
            f"Starting agent loop with {len(run.messages)} messages, "
            f"{len(tools)} tools, max_iterations: {self.max_iterations}"
        )

        try:
            while run.turns < self.max_iterations:
                run.turns += 1
                run.state = LoopState.MODEL_STREAMING
                logger.debug(f"Agent loop turn {run.turns}/{self.max_iterations}")

                requests: list[ToolUseBlock] = []
                stop: CompletionStop | None = None

                async with aclosing(self.client.stream(run.messages, run.system_prompt, tools)) as events:
                    async for event in events:
                        if isinstance(event, TextDelta):
                            if event.text:
                                yield TextEvent(content=event.text)
                        elif isinstance(event, ToolUseBlock):
                            # Tools start as soon as their request is complete
                            requests.append(event)
                            pending.append(asyncio.create_task(self.executor.execute(event.name, event.input)))
                        elif isinstance(event, CompletionStop):
                            stop = event

                if stop is None:
                    raise CompletionError("Completion stream ended without a stop event", code=ErrorCode.API_ERROR)

                run.usage.add(stop.usage)

                if not stop.requested_tools or not requests:
                    if requests:
                        logger.warning(
                            f"Ignoring {len(requests)} tool requests with stop reason {stop.stop_reason}"
                        )
                    if stop.content:
                        run.messages.append(LLMMessage(role="assistant", content=stop.content))
                    run.state = LoopState.DONE
                    logger.info(
                        f"Agent loop completed in {run.turns} turns - "
                        f"input tokens: {run.usage.input_tokens}, output tokens: {run.usage.output_tokens}, "
                        f"cache hit rate: {run.usage.cache_hit_rate:.1f}%"
                    )
                    yield DoneEvent()
                    return

                run.state = LoopState.TOOL_REQUESTED
                logger.info(f"LLM wants to use {len(requests)} tools: {[r.name for r in requests]}")

                run.state = LoopState.TOOL_EXECUTING
                results: list[ContentBlock] = []
                for request, task in zip(requests, pending, strict=True):
                    yield ToolStartEvent(tool=request.name)
                    result = await task
                    yield ToolResultEvent(tool=request.name, display=result.display or "", data=result.data)
                    results.append(
                        ToolResultBlock(
                            tool_use_id=request.id,
                            content=result.model_dump_json(),
                            is_error=not result.success,
                        )
                    )
                pending.clear()

                assistant_content: list[ContentBlock] = list(stop.content)
                if not any(isinstance(block, ToolUseBlock) for block in assistant_content):
                    assistant_content.extend(requests)
                run.messages.append(LLMMessage(role="assistant", content=assistant_content))
                run.messages.append(LLMMessage(role="user", content=results))
                run.state = LoopState.AWAITING_MODEL

            logger.warning(f"Agent loop reached max iterations ({self.max_iterations})")
            run.state = LoopState.DONE
            yield DoneEvent()

        except CompletionError as e:
            logger.error(f"Completion failed ({e.code}): {e}", exc_info=True)
            run.state = LoopState.FAILED
            yield ErrorEvent(message=e.user_message)

        except Exception as e:
            logger.error(f"Agent loop failed: {e}", exc_info=True)
            run.state = LoopState.FAILED
            yield ErrorEvent(message=get_user_message(ErrorCode.UNKNOWN))

        finally:
            for task in pending:
                task.cancel()
