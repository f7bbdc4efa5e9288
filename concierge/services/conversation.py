"""Conversation service: turns a chat request into an SSE stream."""

from collections.abc import AsyncIterator, Callable
from datetime import date

from concierge.models.conversation import ChatMessage
from concierge.models.events import to_sse
from concierge.models.llm import LLMMessage
from concierge.services.agent import AgentLoop, AgentRun
from concierge.services.prompts import build_system_prompt
from concierge.utils.logging import bind_session_id, get_logger

logger = get_logger(__name__)


class ConversationService:
    """Service for handling streamed concierge conversations.

    Holds only shared, stateless collaborators; everything about a single
    conversation lives in the ``AgentRun`` created per request.
    """

    def __init__(
        self,
        agent: AgentLoop,
        knowledge: str = "",
        clock: Callable[[], date] = date.today,
    ):
        """Initialize conversation service.

        Args:
            agent: Agent loop bound to the completion client and tools
            knowledge: Knowledge base text included in the system prompt
            clock: Returns the current local date
        """
        self.agent = agent
        self.knowledge = knowledge
        self.clock = clock

    def create_run(self, messages: list[ChatMessage], session_id: str) -> AgentRun:
        """Seed an agent run from sanitized history."""
        return AgentRun(
            messages=[LLMMessage(role=message.role, content=message.content) for message in messages],
            system_prompt=build_system_prompt(self.clock(), knowledge=self.knowledge, enable_tools=True),
            session_id=session_id,
        )

    async def stream_response(self, messages: list[ChatMessage], session_id: str) -> AsyncIterator[str]:
        """Run the agent and yield SSE frames.

        Args:
            messages: Sanitized, non-empty history ending with the customer's latest message
            session_id: Session identifier used for log correlation

        Yields:
            One ``data: <json>`` frame per stream event
        """
        bind_session_id(session_id)
        logger.info(f"Processing chat with {len(messages)} messages")
        run = self.create_run(messages, session_id)

        async for event in self.agent.run(run):
            yield to_sse(event)

        logger.info(f"Stream finished in state {run.state} after {run.turns} turns")
