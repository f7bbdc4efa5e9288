"""Tests for the streaming Anthropic client: events, error mapping and truncation."""

import asyncio
from types import SimpleNamespace
from unittest.mock import Mock, patch

import httpx
import pytest
from anthropic import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    InternalServerError,
    PermissionDeniedError,
    RateLimitError,
)
from conftest import collect

from concierge.clients.anthropic import AnthropicClient, AnthropicConfig, CompletionError
from concierge.models.llm import (
    CompletionStop,
    LLMMessage,
    LLMToolDefinition,
    TextBlock,
    TextDelta,
    ToolResultBlock,
    ToolUseBlock,
)
from concierge.utils.errors import ErrorCode, get_user_message

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def text_delta(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text=text))


def block_stop(block_type: str, **fields) -> SimpleNamespace:
    return SimpleNamespace(type="content_block_stop", content_block=SimpleNamespace(type=block_type, **fields))


def final_message(stop_reason: str, content: list[dict]) -> SimpleNamespace:
    usage = SimpleNamespace(input_tokens=12, output_tokens=5, cache_creation_input_tokens=None, cache_read_input_tokens=3)
    return SimpleNamespace(stop_reason=stop_reason, content=content, usage=usage)


class FakeMessageStream:
    """Stands in for the SDK's message stream manager and stream."""

    def __init__(self, events=(), final=None, enter_error=None, iter_error=None, delay=0.0):
        self.events = list(events)
        self.final = final
        self.enter_error = enter_error
        self.iter_error = iter_error
        self.delay = delay
        self.exited = False

    async def __aenter__(self):
        if self.enter_error:
            raise self.enter_error
        return self

    async def __aexit__(self, *exc_info):
        self.exited = True
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self.events:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield event
        if self.iter_error:
            raise self.iter_error

    async def get_final_message(self):
        return self.final


class FakeSDK:
    """Stand-in for ``AsyncAnthropic`` exposing ``messages.stream``."""
    def __init__(self, stream: FakeMessageStream):
        self.requests: list[dict] = []
        self.messages = SimpleNamespace(stream=self._stream)
        self._fake_stream = stream

    def _stream(self, **kwargs):
        self.requests.append(kwargs)
        return self._fake_stream


def make_client(stream: FakeMessageStream, config: AnthropicConfig | None = None) -> tuple[AnthropicClient, FakeSDK]:
    sdk = FakeSDK(stream)
    return AnthropicClient(api_key="test-key", config=config, client=sdk), sdk


USER_TURN = [LLMMessage(role="user", content="Do you have a Glock 19?")]
TOOLS = [
    LLMToolDefinition(name="search_products", description="Search", input_schema={"type": "object"}),
    LLMToolDefinition(name="lookup_order", description="Lookup", input_schema={"type": "object"}),
]


class TestStreaming:
    """Tests for streamed completion events."""

    async def test_text_deltas_then_stop(self):
        """Test that text deltas are yielded before the stop event."""
        stream = FakeMessageStream(
            events=[text_delta("Hi"), text_delta(" there"), block_stop("text", text="Hi there")],
            final=final_message("end_turn", [{"type": "text", "text": "Hi there"}]),
        )
        client, _ = make_client(stream)

        events = await collect(client.stream(USER_TURN, "system"))

        assert events[:2] == [TextDelta(text="Hi"), TextDelta(text=" there")]
        stop = events[-1]
        assert isinstance(stop, CompletionStop)
        assert stop.stop_reason == "end_turn"
        assert stop.requested_tools is False
        assert stop.content == [TextBlock(text="Hi there")]
        assert stop.usage.input_tokens == 12
        assert stop.usage.total_tokens == 17
        assert stop.usage.cache_read_input_tokens == 3
        assert stream.exited

    async def test_tool_use_yielded_when_block_completes(self):
        """Test that a tool_use block is yielded once its input is complete."""
        stream = FakeMessageStream(
            events=[
                text_delta("Let me check."),
                SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="input_json_delta", partial_json='{"qu')),
                block_stop("tool_use", id="toolu_1", name="search_products", input={"query": "Glock"}),
            ],
            final=final_message(
                "tool_use",
                [
                    {"type": "text", "text": "Let me check."},
                    {"type": "tool_use", "id": "toolu_1", "name": "search_products", "input": {"query": "Glock"}},
                ],
            ),
        )
        client, _ = make_client(stream)

        events = await collect(client.stream(USER_TURN, "system", TOOLS))

        assert events[0] == TextDelta(text="Let me check.")
        assert events[1] == ToolUseBlock(id="toolu_1", name="search_products", input={"query": "Glock"})
        assert len(events) == 3
        assert events[2].requested_tools is True
        assert events[2].content[1] == events[1]

    async def test_request_parameters(self):
        """Test the parameters sent to the provider."""
        stream = FakeMessageStream(final=final_message("end_turn", []))
        client, sdk = make_client(stream, AnthropicConfig(model="claude-test", max_tokens=256))
        history = [
            *USER_TURN,
            LLMMessage(role="assistant", content=[ToolUseBlock(id="t1", name="search_products", input={})]),
            LLMMessage(role="user", content=[ToolResultBlock(tool_use_id="t1", content="{}")]),
        ]

        await collect(client.stream(history, "system prompt", TOOLS))

        [request] = sdk.requests
        assert request["model"] == "claude-test"
        assert request["max_tokens"] == 256
        assert request["system"] == "system prompt"
        assert request["messages"][0] == {"role": "user", "content": "Do you have a Glock 19?"}
        assert request["messages"][2]["content"] == [
            {"type": "tool_result", "tool_use_id": "t1", "content": "{}", "is_error": False}
        ]

    async def test_cache_control_on_last_tool_only(self):
        """Test that only the last tool carries cache_control."""
        stream = FakeMessageStream(final=final_message("end_turn", []))
        client, sdk = make_client(stream)

        await collect(client.stream(USER_TURN, "system", TOOLS))

        tools = sdk.requests[0]["tools"]
        assert "cache_control" not in tools[0]
        assert tools[-1]["cache_control"] == {"type": "ephemeral"}

    async def test_no_tools_key_without_tools(self):
        """Test that the tools key is omitted when no tools are given."""
        stream = FakeMessageStream(final=final_message("end_turn", []))
        client, sdk = make_client(stream)

        await collect(client.stream(USER_TURN, "system"))

        assert "tools" not in sdk.requests[0]

    async def test_closing_generator_closes_provider_stream(self):
        """Test that closing the generator closes the provider stream."""
        stream = FakeMessageStream(events=[text_delta("a"), text_delta("b")], final=final_message("end_turn", []))
        client, _ = make_client(stream)

        events = client.stream(USER_TURN, "system")
        assert await anext(events) == TextDelta(text="a")
        await events.aclose()

        assert stream.exited


class TestErrorMapping:
    """Tests for provider failures becoming CompletionError codes."""

    @staticmethod
    def status_error(cls, status: int):
        return cls("error", response=httpx.Response(status, request=REQUEST), body=None)

    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (APITimeoutError(request=REQUEST), ErrorCode.TIMEOUT),
            (APIConnectionError(request=REQUEST), ErrorCode.API_ERROR),
        ],
    )
    async def test_transport_errors(self, error, code):
        """Test that connection failures and timeouts map to error codes."""
        client, _ = make_client(FakeMessageStream(enter_error=error))

        with pytest.raises(CompletionError) as exc_info:
            await collect(client.stream(USER_TURN, "system"))

        assert exc_info.value.code == code
        assert exc_info.value.user_message == get_user_message(code)

    @pytest.mark.parametrize(
        ("error_class", "status", "code"),
        [
            (RateLimitError, 429, ErrorCode.RATE_LIMIT),
            (AuthenticationError, 401, ErrorCode.INVALID_API_KEY),
            (PermissionDeniedError, 403, ErrorCode.INVALID_API_KEY),
            (InternalServerError, 500, ErrorCode.API_ERROR),
        ],
    )
    async def test_status_errors(self, error_class, status, code):
        """Test that provider status errors map to error codes."""
        client, _ = make_client(FakeMessageStream(enter_error=self.status_error(error_class, status)))

        with pytest.raises(CompletionError) as exc_info:
            await collect(client.stream(USER_TURN, "system"))

        assert exc_info.value.code == code

    async def test_error_mid_stream_after_text(self):
        """Test that an error after some text is still raised as a completion error."""
        stream = FakeMessageStream(
            events=[text_delta("partial")], iter_error=self.status_error(InternalServerError, 529)
        )
        client, _ = make_client(stream)

        received = []
        with pytest.raises(CompletionError) as exc_info:
            async for event in client.stream(USER_TURN, "system"):
                received.append(event)

        assert received == [TextDelta(text="partial")]
        assert exc_info.value.code == ErrorCode.API_ERROR
        assert stream.exited

    async def test_overall_deadline(self):
        """Test that the overall deadline raises a timeout."""
        stream = FakeMessageStream(events=[text_delta("slow")], delay=1.0, final=final_message("end_turn", []))
        client, _ = make_client(stream, AnthropicConfig(timeout_seconds=0.05))

        with pytest.raises(CompletionError) as exc_info:
            await collect(client.stream(USER_TURN, "system"))

        assert exc_info.value.code == ErrorCode.TIMEOUT

    async def test_missing_api_key_fails_at_call_time(self):
        """Test that a missing key fails when streaming, not at construction."""
        client = AnthropicClient(api_key=None)

        with pytest.raises(CompletionError) as exc_info:
            await collect(client.stream(USER_TURN, "system"))

        assert exc_info.value.code == ErrorCode.MISSING_API_KEY
        assert exc_info.value.user_message == get_user_message(ErrorCode.MISSING_API_KEY)


class TestConversationTruncation:
    """Tests for conversation truncation functionality."""

    @pytest.fixture
    def anthropic_client(self):
        """Client with a tiny context budget and a tokenizer counting two characters per token."""
        config = AnthropicConfig(max_conversation_tokens=100, token_headroom=10)
        client = AnthropicClient(api_key="test-key", config=config)
        client.tokenizer = Mock()
        client.tokenizer.encode.side_effect = lambda text: ["t"] * (len(text) // 2)
        return client

    def test_short_conversation_skips_tokenizer(self, anthropic_client):
        """Test that short conversations are not tokenized."""
        messages = [LLMMessage(role="user", content="Hi"), LLMMessage(role="assistant", content="Hello")]

        assert anthropic_client.truncate_conversation(messages, "sys") == messages
        anthropic_client.tokenizer.encode.assert_not_called()

    def test_conversation_within_limit(self, anthropic_client):
        """Test that a conversation within the limit is unchanged."""
        messages = [
            LLMMessage(role="user", content="u" * 30),
            LLMMessage(role="assistant", content="a" * 30),
            LLMMessage(role="user", content="u" * 30),
        ]

        assert anthropic_client.truncate_conversation(messages, "sys") == messages

    def test_drops_oldest_messages_and_leading_assistant(self, anthropic_client):
        """Test that truncation drops the oldest turns and any leading assistant turn."""
        messages = [
            LLMMessage(role="user" if i % 2 == 0 else "assistant", content=f"{i}" * 60) for i in range(5)
        ]

        result = anthropic_client.truncate_conversation(messages, "sys")

        assert result == [messages[-1]]

    def test_never_starts_with_orphaned_tool_result(self, anthropic_client):
        """Test that truncation never leaves an orphaned tool result first."""
        messages = [
            LLMMessage(role="user", content="x" * 60),
            LLMMessage(role="assistant", content=[ToolUseBlock(id="t1", name="search_products", input={})]),
            LLMMessage(role="user", content=[ToolResultBlock(tool_use_id="t1", content="r" * 60)]),
            LLMMessage(role="assistant", content="y" * 10),
            LLMMessage(role="user", content="z" * 60),
        ]

        result = anthropic_client.truncate_conversation(messages, "sys")

        assert result[0].role == "user"
        assert isinstance(result[0].content, str)
        assert result == [messages[-1]]

    def test_oversized_latest_turn_sent_untruncated(self, anthropic_client):
        """Test that a single oversized latest turn is kept as is."""
        messages = [LLMMessage(role="user", content="x" * 500)]
        assert anthropic_client.truncate_conversation(messages, "sys") == messages

    def test_empty_messages(self, anthropic_client):
        """Test truncating an empty conversation."""
        assert anthropic_client.truncate_conversation([], "sys") == []

    def test_character_estimate_when_tokenizer_unavailable(self):
        """Test the character-based estimate when tiktoken cannot load."""
        client = AnthropicClient(api_key="test-key")
        with patch("concierge.clients.anthropic.tiktoken.get_encoding", side_effect=Exception("offline")):
            assert client.estimate_tokens("abcdefgh") == 2
        assert client.tokenizer is None
