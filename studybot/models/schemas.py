from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    """Speaker of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


class StreamStatus(str, Enum):
    """Status values for streaming updates."""

    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


def new_message_id() -> str:
    """Return an opaque, session-unique message id."""
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(UTC)


class Identity(BaseModel):
    """User identity that gates chat participation.

    Replaced as a whole when the profile is edited, never mutated.

    Attributes:
        display_name: Name the assistant addresses the user by.
        avatar_image: Avatar as a data URL or bare base64 PNG, if the user set one.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    display_name: str = Field(..., min_length=1, alias="displayName")
    avatar_image: str | None = Field(None, alias="avatarImage")

    @field_validator("display_name", mode="before")
    @classmethod
    def strip_display_name(cls, v: str) -> str:
        """Strip whitespace from the display name before validation."""
        if isinstance(v, str):
            return v.strip()
        return v

    @property
    def avatar_src(self) -> str | None:
        """Avatar as an image source: data URLs as stored, bare base64 as PNG."""
        if not self.avatar_image:
            return None
        if self.avatar_image.startswith("data:"):
            return self.avatar_image
        return f"data:image/png;base64,{self.avatar_image}"


class Message(BaseModel):
    """A single message in the conversation log.

    ``text`` grows while the message is the target of a streaming exchange
    and is frozen afterwards.

    Attributes:
        id: Opaque id, unique within the session.
        role: The speaker (user or assistant).
        text: The message text.
        created_at: Creation timestamp (UTC).
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_message_id)
    role: Role
    text: str
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")

    @field_validator("role", mode="before")
    @classmethod
    def accept_legacy_model_role(cls, v: object) -> object:
        """Read records written by the older widget, which used ``model``."""
        if v == "model":
            return Role.ASSISTANT
        return v


class StreamChunk(BaseModel):
    """A chunk of streamed response data.

    Attributes:
        content: The text content of this chunk.
        done: Whether this is the terminal chunk.
        status: Current processing status (generating, complete, error).
        error: Failure reason when the exchange ended in error.
    """

    content: str
    done: bool
    status: StreamStatus | None = None
    error: str | None = None

    @classmethod
    def text(cls, content: str) -> "StreamChunk":
        return cls(content=content, done=False, status=StreamStatus.GENERATING)

    @classmethod
    def complete(cls) -> "StreamChunk":
        return cls(content="", done=True, status=StreamStatus.COMPLETE)

    @classmethod
    def failed(cls, reason: str) -> "StreamChunk":
        return cls(content="", done=True, status=StreamStatus.ERROR, error=reason)


class ChatRequest(BaseModel):
    """Request payload for the chat streaming endpoint.

    Attributes:
        message: User's question or prompt.
    """

    message: str = Field(..., min_length=1)

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class ChatHistoryResponse(BaseModel):
    """Snapshot of the conversation for display.

    Attributes:
        messages: The conversation log in display order.
        loading: Waiting for the first chunk of a reply.
        streaming: A reply is growing.
        target_message_id: Id of the reply being grown, if any.
    """

    model_config = ConfigDict(populate_by_name=True)

    messages: list[Message]
    loading: bool
    streaming: bool
    target_message_id: str | None = Field(None, alias="targetMessageId")
