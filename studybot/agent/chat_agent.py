"""Streaming client for the study assistant, built on an Agno agent.

Architecture Decisions:

1. **Client-side history** - The conversation log lives in the session store,
   not in Agno's storage. Each exchange sends the full history as messages,
   so the agent runs stateless and needs no database.

2. **Agent per exchange** - The system directive embeds the user's display
   name, so the agent is built for each call. Building it is cheap; the
   network client is created lazily by the model on first use.

3. **Errors become content** - A missing API key, a raised exception or an
   Agno ``RunError`` event is reported as one apology chunk followed by an
   error terminal chunk. Callers never need a separate error path.

4. **Exact chunks** - Content is yielded as received: never trimmed,
   merged or reordered. Formatting for display happens elsewhere.
"""

import logging
from collections.abc import AsyncGenerator, Sequence

from agno.agent import Agent
from agno.models.message import Message as AgentMessage
from agno.models.openai import OpenAIChat
from agno.run.agent import RunEvent

from studybot.agent.config import AgentConfig, get_agent_config
from studybot.models.schemas import Message, Role, StreamChunk

logger = logging.getLogger(__name__)

SYSTEM_DIRECTIVE = [
    'You are a smart, friendly, and encouraging study assistant named "StudyWithMe AI".',
    "Your goal is to help students learn effectively.",
    "You must address the user by their name if provided.",
    "Do NOT provide any external URL links (http/https). If a user asks for a link, "
    "politely explain that you cannot provide links but can summarize the information.",
    "Keep your answers concise, well-formatted, and easy to read.",
    "Use a polite, academic yet approachable tone.",
    "If the user asks about the website features, explain them based on the context "
    'of "StudyWithMe" (career guidance, study methods, materials, etc.).',
]

MISSING_API_KEY_REPLY = "Xin lỗi, tôi chưa được kết nối với API (Thiếu API Key)."
STREAM_ERROR_REPLY = "Đã có lỗi xảy ra khi kết nối với trợ lý ảo. Vui lòng thử lại sau."

def build_instructions(display_name: str) -> list[str]:
    """Return the fixed system directive addressed to ``display_name``."""
    return [*SYSTEM_DIRECTIVE, f'The user\'s name is "{display_name}".']


def to_agent_messages(history: Sequence[Message], new_text: str) -> list[AgentMessage]:
    """Convert the conversation log plus the new user text into model input."""
    messages = [AgentMessage(role=message.role.value, content=message.text) for message in history]
    messages.append(AgentMessage(role=Role.USER.value, content=new_text))
    return messages


class StreamingClient:
    """Opens one streamed exchange with the remote model per call.

    No retry and no cancellation: each call is drained to its terminal chunk.
    """

    def __init__(self, config: AgentConfig | None = None) -> None:
        """Initialize the streaming client.

        Args:
            config: Optional agent configuration.
                    Loads from environment if not provided.
        """
        self._config = config or get_agent_config()

    def _create_agent(self, display_name: str) -> Agent:
        """Create an Agno agent addressing ``display_name``.

        Returns:
            Agent with an OpenAI-compatible model and no storage.
        """
        model = OpenAIChat(
            id=self._config.model_name,
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
        )

        return Agent(
            model=model,
            description="StudyWithMe AI, a study assistant embedded in the StudyWithMe website.",
            instructions=build_instructions(display_name),
            # Output as markdown; the text formatter renders a safe subset
            markdown=True,
        )

    async def stream(
        self,
        history: Sequence[Message],
        new_text: str,
        display_name: str,
    ) -> AsyncGenerator[StreamChunk]:
        """Stream the reply to ``new_text`` given the prior ``history``.

        Args:
            history: Conversation log before the new user message.
            new_text: The user's message, never empty.
            display_name: Name the assistant addresses the user by.

        Yields:
            Text chunks in arrival order, then exactly one terminal chunk.
        """
        if not self._config.has_api_key:
            logger.error("No LLM API key configured; replying with an apology")
            yield StreamChunk.text(MISSING_API_KEY_REPLY)
            yield StreamChunk.failed("missing API key")
            return

        delivered = 0
        failure: str | None = None
        try:
            agent = self._create_agent(display_name)
            response_stream = agent.arun(
                input=to_agent_messages(history, new_text),
                stream=True,
            )

            # Agno reports model and transport failures as a RunError event
            # instead of raising out of the stream.
            async for event in response_stream:
                kind = getattr(event, "event", None)
                if kind == RunEvent.run_error:
                    failure = str(getattr(event, "content", None) or "model run failed")
                    logger.error(f"Agent run failed after {delivered} chunks: {failure}")
                    break
                if kind != RunEvent.run_content:
                    continue
                content = getattr(event, "content", None)
                if isinstance(content, str) and content:
                    delivered += 1
                    yield StreamChunk.text(content)

        except Exception as e:
            logger.exception(f"Streaming exchange failed after {delivered} chunks")
            failure = str(e) or type(e).__name__

        if failure is not None:
            apology = STREAM_ERROR_REPLY if delivered == 0 else f"\n\n{STREAM_ERROR_REPLY}"
            yield StreamChunk.text(apology)
            yield StreamChunk.failed(failure)
            return

        logger.debug(f"Streaming exchange complete ({delivered} chunks)")
        yield StreamChunk.complete()


# Module-level singleton instance
_streaming_client: StreamingClient | None = None


def get_streaming_client() -> StreamingClient:
    """Get or create the global streaming client.

    Returns:
        The StreamingClient instance.
    """
    global _streaming_client
    if _streaming_client is None:
        _streaming_client = StreamingClient()
    return _streaming_client
