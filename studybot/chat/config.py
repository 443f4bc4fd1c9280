"""Chat session configuration with environment variable loading.

Pydantic-based configuration for where and under which record names the
conversation log and the user identity are persisted.
"""

import os
import re
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()

_DEFAULT_DATA_DIR = Path(__file__).parent.parent.parent / "data"
_RECORD_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class ChatConfig(BaseModel):
    """Configuration for the chat session engine.

    Attributes:
        data_dir: Directory holding the persisted records.
        history_key: Record name of the conversation log.
        identity_key: Record name of the user identity.
        assistant_name: Product name used in the welcome message.
    """

    data_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("STUDYBOT_DATA_DIR") or _DEFAULT_DATA_DIR),
        description="Directory for persisted chat records",
    )
    history_key: str = Field(
        default="studyWithMe_chatHistory",
        description="Record name of the conversation log",
    )
    identity_key: str = Field(
        default="studyWithMe_user",
        description="Record name of the user identity",
    )
    assistant_name: str = Field(
        default="StudyWithMe",
        min_length=1,
        description="Product name used in the welcome message",
    )

    @field_validator("history_key", "identity_key")
    @classmethod
    def validate_record_key(cls, v: str) -> str:
        """Record keys double as file names, so keep them filename-safe."""
        if not _RECORD_KEY_PATTERN.match(v):
            raise ValueError(f"Invalid record key {v!r}: use letters, digits, '_', '.', '-'")
        return v


def get_chat_config() -> ChatConfig:
    """Create chat configuration from environment.

    Returns:
        Configured ChatConfig instance.
    """
    return ChatConfig()
