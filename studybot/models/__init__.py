"""Pydantic models shared by the chat engine, the API and the UI.

Models:
    - Identity: display name and optional avatar gating chat participation
    - Message: one entry of the conversation log
    - StreamChunk: one frame of a streamed reply, or its terminal signal
    - ChatRequest: incoming chat request payload
    - ChatHistoryResponse: conversation snapshot for display
"""

from studybot.models.schemas import (
    ChatHistoryResponse,
    ChatRequest,
    Identity,
    Message,
    Role,
    StreamChunk,
    StreamStatus,
    new_message_id,
    utc_now,
)

__all__ = [
    "ChatHistoryResponse",
    "ChatRequest",
    "Identity",
    "Message",
    "Role",
    "StreamChunk",
    "StreamStatus",
    "new_message_id",
    "utc_now",
]
