"""Chat session engine.

Responsibilities:
    - Persisted, ordered conversation log (session store)
    - Identity gate in front of every send
    - Assembly of streamed reply chunks into the log
    - Safe formatting of reply text for display

Holds all chat state; the API and UI layers only read views and submit.
"""

from studybot.chat.controller import (
    AssemblyController,
    ChatState,
    ChatView,
    SubmitResult,
    create_chat_controller,
    get_chat_controller,
)
from studybot.chat.formatter import format_text, to_html
from studybot.chat.identity import IdentityStore, can_send
from studybot.chat.store import MessageNotFoundError, PersistenceCorruptError, SessionStore

__all__ = [
    "AssemblyController",
    "ChatState",
    "ChatView",
    "IdentityStore",
    "MessageNotFoundError",
    "PersistenceCorruptError",
    "SessionStore",
    "SubmitResult",
    "can_send",
    "create_chat_controller",
    "format_text",
    "get_chat_controller",
    "to_html",
]
