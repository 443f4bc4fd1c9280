"""Agno agent logic for the streamed study-assistant exchange.

Responsibilities:
    - Agent initialization with OpenAI-compatible models
    - Fixed persona directive addressed to the user's display name
    - Conversation history handed to the model as context
    - Streaming chunk delivery, with failures turned into reply text

Maintains clean separation from the HTTP and UI layers.
"""

from studybot.agent.chat_agent import StreamingClient, get_streaming_client
from studybot.agent.config import AgentConfig, get_agent_config

__all__ = ["AgentConfig", "StreamingClient", "get_agent_config", "get_streaming_client"]
