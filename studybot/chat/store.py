"""Session store: sole owner of the persisted conversation log.

The in-memory log is authoritative for the running session. Every mutating
call persists the log, but durability is best-effort: storage failures are
logged and swallowed, never raised to the caller.
"""

import logging

from pydantic import TypeAdapter, ValidationError

from studybot.chat.storage import RecordStorage, StorageError
from studybot.models.schemas import Message, Role

logger = logging.getLogger(__name__)

WELCOME_MESSAGE_ID = "welcome"
DEFAULT_USER_NAME = "bạn"

_LOG_ADAPTER = TypeAdapter(list[Message])


class PersistenceCorruptError(Exception):
    """Raised when a persisted conversation log cannot be decoded."""

    pass


class MessageNotFoundError(Exception):
    """Raised when a mutation targets a message that is not the growing tail."""

    pass


def welcome_message(display_name: str | None, assistant_name: str = "StudyWithMe") -> Message:
    """Build the synthetic greeting that seeds a fresh conversation."""
    name = (display_name or "").strip() or DEFAULT_USER_NAME
    return Message(
        id=WELCOME_MESSAGE_ID,
        role=Role.ASSISTANT,
        text=(
            f"Chào {name}! Mình là trợ lý học tập {assistant_name}. "
            "Mình có thể giúp gì cho việc học của bạn hôm nay?"
        ),
    )


def encode_log(messages: list[Message]) -> str:
    return _LOG_ADAPTER.dump_json(messages, by_alias=True).decode("utf-8")


def decode_log(data: str) -> list[Message]:
    """Decode a persisted log.

    Raises:
        PersistenceCorruptError: If the record is not a valid log.
    """
    try:
        messages = _LOG_ADAPTER.validate_json(data)
    except ValidationError as e:
        raise PersistenceCorruptError(f"Malformed conversation log: {e.error_count()} errors") from e

    ids = [message.id for message in messages]
    if len(ids) != len(set(ids)):
        raise PersistenceCorruptError("Malformed conversation log: duplicate message ids")
    return messages


class SessionStore:
    """Ordered conversation log with best-effort persistence.

    All access to the log goes through ``load``, ``append``, ``mutate_last``
    and ``clear``; readers get copies via ``messages``.
    """

    def __init__(
        self,
        storage: RecordStorage,
        key: str = "studyWithMe_chatHistory",
        assistant_name: str = "StudyWithMe",
    ) -> None:
        self._storage = storage
        self._key = key
        self._assistant_name = assistant_name
        self._messages: list[Message] = []
        self._cleared = False

    @property
    def messages(self) -> tuple[Message, ...]:
        """Snapshot of the log in insertion order."""
        return tuple(message.model_copy() for message in self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def last(self) -> Message | None:
        return self._messages[-1].model_copy() if self._messages else None

    def _read(self) -> list[Message] | None:
        """Read the persisted log, or None if there is none.

        Raises:
            PersistenceCorruptError: If the record exists but is malformed.
        """
        try:
            data = self._storage.read(self._key)
        except StorageError as e:
            logger.warning(f"Could not read conversation log, starting fresh: {e}")
            return None
        if data is None:
            return None
        return decode_log(data)

    def load(self, display_name: str | None = None) -> tuple[Message, ...]:
        """Load the conversation log from storage.

        A missing or corrupt record yields a log seeded with the welcome
        message, which is then persisted. After ``clear()`` the log stays
        empty until a new store is created.

        Args:
            display_name: Name embedded in the welcome message, if seeded.

        Returns:
            The loaded log.
        """
        if self._cleared:
            self._messages = []
            return self.messages

        try:
            messages = self._read()
        except PersistenceCorruptError as e:
            logger.warning(f"Discarding corrupt conversation log: {e}")
            messages = None

        if messages is None:
            self._messages = [welcome_message(display_name, self._assistant_name)]
            self.save()
        else:
            self._messages = messages
            logger.info(f"Loaded conversation log with {len(messages)} messages")
        return self.messages

    def append(self, message: Message) -> None:
        """Insert a message at the tail of the log.

        Raises:
            ValueError: If a message with the same id is already in the log.
        """
        if any(existing.id == message.id for existing in self._messages):
            raise ValueError(f"Duplicate message id: {message.id}")
        self._messages.append(message.model_copy())
        self._cleared = False
        self.save()

    def mutate_last(self, message_id: str, text_delta: str) -> None:
        """Append text to the growing assistant message at the tail.

        Raises:
            MessageNotFoundError: If the tail is not an assistant message
                with ``message_id``.
        """
        tail = self._messages[-1] if self._messages else None
        if tail is None or tail.id != message_id or tail.role is not Role.ASSISTANT:
            raise MessageNotFoundError(f"Message {message_id} is not the growing tail of the log")
        tail.text += text_delta
        self.save()

    def clear(self) -> None:
        """Empty the log and remove its persisted record."""
        self._messages = []
        self._cleared = True
        try:
            self._storage.remove(self._key)
        except StorageError as e:
            logger.error(f"Failed to remove persisted conversation log: {e}")

    def save(self) -> None:
        """Persist the log. Failures are logged, never raised."""
        try:
            if self._messages:
                self._storage.write(self._key, encode_log(self._messages))
            else:
                self._storage.remove(self._key)
        except StorageError as e:
            logger.error(f"Failed to persist conversation log: {e}")
