"""Streaming Anthropic API client with error mapping and history truncation."""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Literal

import tiktoken
from anthropic import (
    APIError,
    APITimeoutError,
    AsyncAnthropic,
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
)
from pydantic import BaseModel

from concierge.models.llm import (
    CompletionEvent,
    CompletionStop,
    ContentBlock,
    LLMMessage,
    LLMToolDefinition,
    LLMUsage,
    TextBlock,
    TextDelta,
    ToolResultBlock,
    ToolUseBlock,
)
from concierge.utils.errors import ErrorCode, get_user_message
from concierge.utils.logging import get_logger

logger = get_logger(__name__)


class CacheControl(BaseModel):
    """Cache control configuration for prompt caching."""

    type: Literal["ephemeral"] = "ephemeral"


class AnthropicTool(LLMToolDefinition):
    """Tool definition as sent to the Anthropic API."""

    cache_control: CacheControl | None = None


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1024
    temperature: float = 0.3

    # Overall deadline for one completion call, across every provider wait
    timeout_seconds: float = 30.0

    # Token limits for truncation
    max_conversation_tokens: int = 200000
    token_headroom: int = 2000  # Reserve tokens for response


class CompletionError(Exception):
    """A completion call failed.

    ``code`` is an ``ErrorCode``; ``user_message`` is the matching
    customer-facing text.
    """

    def __init__(self, message: str, code: str = ErrorCode.API_ERROR):
        super().__init__(message)
        self.code = code
        self.user_message = get_user_message(code)


class AnthropicClient:
    """Async streaming Anthropic API client.

    The SDK handle is created on first use and reused for every call. The
    client holds no per-conversation state, so one instance serves all
    concurrent requests.
    """

    tokenizer: tiktoken.Encoding | None = None
    _tokenizer_loaded: bool = False

    def __init__(
        self,
        api_key: str | None = None,
        config: AnthropicConfig | None = None,
        client: AsyncAnthropic | None = None,
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key; a missing key fails each call rather than construction
            config: Client configuration
            client: Pre-built SDK client (mainly for tests)
        """
        self.api_key = api_key
        self.config = config or AnthropicConfig()
        self._client = client

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            if not self.api_key:
                raise CompletionError("ANTHROPIC_API_KEY is not configured", code=ErrorCode.MISSING_API_KEY)
            # Retries are disabled: a failed call is reported, never replayed
            self._client = AsyncAnthropic(api_key=self.api_key, max_retries=0)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def stream(
        self,
        messages: list[LLMMessage],
        system_prompt: str,
        tools: list[LLMToolDefinition] | None = None,
    ) -> AsyncIterator[CompletionEvent]:
        """Stream one completion.

        Yields ``TextDelta`` for each text fragment as it arrives, a
        ``ToolUseBlock`` once each tool request is complete, and finally one
        ``CompletionStop``. Closing the generator early closes the underlying
        HTTP stream.

        Raises:
            CompletionError: On configuration, auth, rate-limit, timeout or API failure
        """
        sdk = self._get_client()
        request_params = self._build_request(messages, system_prompt, tools)
        deadline = asyncio.get_running_loop().time() + self.config.timeout_seconds

        logger.debug(
            f"Streaming completion with {len(request_params['messages'])} messages, "
            f"{len(request_params.get('tools', []))} tools, model {request_params['model']}"
        )

        try:
            async with AsyncExitStack() as stack:
                async with asyncio.timeout_at(deadline):
                    stream = await stack.enter_async_context(sdk.messages.stream(**request_params))

                events = aiter(stream)
                while True:
                    async with asyncio.timeout_at(deadline):
                        event = await anext(events, None)
                    if event is None:
                        break

                    if event.type == "content_block_delta" and event.delta.type == "text_delta":
                        yield TextDelta(text=event.delta.text)
                    elif event.type == "content_block_stop" and event.content_block.type == "tool_use":
                        block = event.content_block
                        yield ToolUseBlock(id=block.id, name=block.name, input=dict(block.input or {}))

                async with asyncio.timeout_at(deadline):
                    final = await stream.get_final_message()

        except TimeoutError as e:
            raise CompletionError(f"Completion exceeded {self.config.timeout_seconds}s", code=ErrorCode.TIMEOUT) from e
        except APITimeoutError as e:
            raise CompletionError("Anthropic request timed out", code=ErrorCode.TIMEOUT) from e
        except RateLimitError as e:
            raise CompletionError("Anthropic rate limit exceeded", code=ErrorCode.RATE_LIMIT) from e
        except (AuthenticationError, PermissionDeniedError) as e:
            raise CompletionError("Anthropic rejected the API key", code=ErrorCode.INVALID_API_KEY) from e
        except APIError as e:
            raise CompletionError(f"Anthropic API error: {e}", code=ErrorCode.API_ERROR) from e

        usage = LLMUsage()
        if final.usage:
            usage = LLMUsage(
                input_tokens=final.usage.input_tokens,
                output_tokens=final.usage.output_tokens,
                total_tokens=final.usage.input_tokens + final.usage.output_tokens,
                cache_creation_input_tokens=final.usage.cache_creation_input_tokens or 0,
                cache_read_input_tokens=final.usage.cache_read_input_tokens or 0,
            )

        logger.debug(f"Completion finished - Stop reason: {final.stop_reason}, Content blocks: {len(final.content)}")

        yield CompletionStop(
            stop_reason=final.stop_reason,
            content=self._convert_content_blocks(final.content),
            usage=usage,
        )

    def _build_request(
        self,
        messages: list[LLMMessage],
        system_prompt: str,
        tools: list[LLMToolDefinition] | None,
    ) -> dict[str, Any]:
        api_tools = self._to_api_tools(tools)
        truncated = self.truncate_conversation(messages, system_prompt, api_tools)

        request_params: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "system": system_prompt,
            "messages": [message.model_dump(exclude_none=True) for message in truncated],
        }
        if api_tools:
            request_params["tools"] = [tool.model_dump(exclude_none=True) for tool in api_tools]
        return request_params

    def _to_api_tools(self, tools: list[LLMToolDefinition] | None) -> list[AnthropicTool]:
        """Convert tool definitions, marking the last one as a prompt-cache breakpoint."""
        if not tools:
            return []
        api_tools = [AnthropicTool(**tool.model_dump()) for tool in tools]
        api_tools[-1].cache_control = CacheControl()
        return api_tools

    def _convert_content_blocks(self, anthropic_content: list[Any]) -> list[ContentBlock]:
        """Convert Anthropic content blocks to our ContentBlock types."""
        converted_blocks: list[ContentBlock] = []
        for block in anthropic_content:
            block_dict = block.model_dump() if hasattr(block, "model_dump") else dict(block)

            if block_dict.get("type") == "text":
                converted_blocks.append(TextBlock.model_validate(block_dict))
            elif block_dict.get("type") == "tool_use":
                converted_blocks.append(ToolUseBlock.model_validate(block_dict))
            else:
                logger.warning(f"Unknown content block type: {block_dict.get('type')}")

        return converted_blocks

    def _get_tokenizer(self) -> tiktoken.Encoding | None:
        """Load the tokenizer on first use; it downloads its ranks the first time."""
        if self.tokenizer is None and not self._tokenizer_loaded:
            self._tokenizer_loaded = True
            try:
                # Close approximation for Claude
                self.tokenizer = tiktoken.get_encoding("cl100k_base")
            except Exception as e:
                logger.warning(f"Tokenizer unavailable, estimating by characters: {e}")
        return self.tokenizer

    def estimate_tokens(self, text: str) -> int:
        """Estimate the token count of a piece of text."""
        tokenizer = self._get_tokenizer()
        if tokenizer is None:
            # Roughly 4 characters per token
            return len(text) // 4
        return len(tokenizer.encode(text))

    def _message_text(self, message: LLMMessage) -> str:
        if isinstance(message.content, str):
            return message.content

        parts = []
        for block in message.content:
            if isinstance(block, TextBlock):
                parts.append(block.text)
            elif isinstance(block, ToolUseBlock):
                parts.append(block.name + json.dumps(block.input))
            elif isinstance(block, ToolResultBlock):
                parts.append(block.content)
        return "".join(parts)

    def truncate_conversation(
        self,
        messages: list[LLMMessage],
        system_prompt: str,
        tools: list[AnthropicTool] | None = None,
    ) -> list[LLMMessage]:
        """Drop the oldest messages until the conversation fits the context budget.

        The result always starts with a plain-text user turn, so a tool result
        is never sent without the tool request it answers.

        Args:
            messages: Conversation messages
            system_prompt: System prompt
            tools: Tools sent with the request

        Returns:
            Truncated message list that fits within limits
        """
        if not messages:
            return messages

        tool_content = "".join(tool.name + tool.description + json.dumps(tool.input_schema) for tool in tools or [])
        texts = [self._message_text(message) for message in messages]
        available_tokens = self.config.max_conversation_tokens - self.config.token_headroom

        # Short conversations skip tokenization entirely
        if len(system_prompt) + len(tool_content) + sum(len(text) for text in texts) <= available_tokens // 2:
            return messages

        available_tokens -= self.estimate_tokens(system_prompt) + self.estimate_tokens(tool_content)

        kept = 0
        current_tokens = 0
        for text in reversed(texts):
            message_tokens = self.estimate_tokens(text)
            if current_tokens + message_tokens > available_tokens:
                break
            current_tokens += message_tokens
            kept += 1

        truncated = messages[len(messages) - kept :]
        while truncated and not (truncated[0].role == "user" and isinstance(truncated[0].content, str)):
            truncated = truncated[1:]

        if not truncated:
            logger.warning("Latest turn alone exceeds the context budget; sending conversation untruncated")
            return messages

        if len(truncated) < len(messages):
            logger.warning(
                f"Truncated conversation from {len(messages)} to {len(truncated)} messages "
                f"to fit within {available_tokens} token limit"
            )

        return truncated
