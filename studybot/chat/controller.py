"""Assembly controller: turns a stream of reply chunks into the conversation.

Per send the controller moves ``IDLE -> AWAITING_FIRST_CHUNK -> STREAMING ->
IDLE``. There is no error state: the streaming client delivers failures as
reply text. At most one exchange is in flight; a submit while not idle is
rejected.
"""

import logging
from collections.abc import AsyncGenerator, Callable, Sequence
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from studybot.agent.chat_agent import get_streaming_client
from studybot.chat.config import ChatConfig, get_chat_config
from studybot.chat.identity import IdentityStore, can_send
from studybot.chat.storage import JsonFileStorage
from studybot.chat.store import MessageNotFoundError, SessionStore
from studybot.models.schemas import Identity, Message, Role, StreamChunk, new_message_id

logger = logging.getLogger(__name__)


class ChatState(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST_CHUNK = "awaiting_first_chunk"
    STREAMING = "streaming"


class SubmitResult(str, Enum):
    """Outcome of a submit attempt."""

    SENT = "sent"
    EMPTY = "empty"
    IDENTITY_REQUIRED = "identity_required"
    BUSY = "busy"
    DISPOSED = "disposed"


class ChatStreamer(Protocol):
    """Anything that can stream a reply, e.g. ``StreamingClient``."""

    def stream(
        self,
        history: Sequence[Message],
        new_text: str,
        display_name: str,
    ) -> AsyncGenerator[StreamChunk]: ...


class ChatView(BaseModel):
    """Read-only snapshot handed to the render sink.

    Attributes:
        messages: The conversation log in display order.
        loading: Waiting for the first chunk of a reply.
        streaming: The reply with ``target_message_id`` is growing.
        target_message_id: Id reserved for the reply of the in-flight exchange.
        state: Controller state.
    """

    model_config = ConfigDict(frozen=True)

    messages: tuple[Message, ...]
    loading: bool
    streaming: bool
    target_message_id: str | None
    state: ChatState

    @property
    def busy(self) -> bool:
        return self.state is not ChatState.IDLE


ViewListener = Callable[[ChatView], None]


@dataclass
class _Exchange:
    """The in-flight streaming exchange; lives until its terminal chunk."""

    history: tuple[Message, ...]
    text: str
    display_name: str
    target_message_id: str
    started: bool = False
    first_chunk_received: bool = False


class AssemblyController:
    """Orchestrates one chat session.

    The session store stays the source of truth: the controller only keeps
    the id of the reply it is growing, and only until the stream ends.
    """

    def __init__(
        self,
        store: SessionStore,
        client: ChatStreamer,
        identity_store: IdentityStore | None = None,
        identity: Identity | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._identity_store = identity_store
        self._identity = identity
        self._state = ChatState.IDLE
        self._exchange: _Exchange | None = None
        self._listeners: list[ViewListener] = []
        self._identity_listeners: list[Callable[[], None]] = []
        self._disposed = False
        self.draft = ""

    @property
    def state(self) -> ChatState:
        return self._state

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def view(self) -> ChatView:
        exchange = self._exchange
        return ChatView(
            messages=self._store.messages,
            loading=self._state is ChatState.AWAITING_FIRST_CHUNK,
            streaming=self._state is ChatState.STREAMING,
            target_message_id=exchange.target_message_id if exchange else None,
            state=self._state,
        )

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        """Call ``listener`` with a fresh view after every change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_identity_required(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback`` when a send is refused for lack of an identity."""
        self._identity_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._identity_listeners:
                self._identity_listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        view = self.view
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("Chat view listener failed")

    def _request_identity(self) -> None:
        for callback in list(self._identity_listeners):
            try:
                callback()
            except Exception:
                logger.exception("Identity request callback failed")

    def load(self) -> ChatView:
        """Load the conversation log, seeding the welcome message if needed."""
        display_name = self._identity.display_name if self._identity else None
        self._store.load(display_name)
        self._notify()
        return self.view

    def set_identity(self, identity: Identity | None) -> None:
        """Replace the user identity (None makes the session anonymous)."""
        self._identity = identity
        if self._identity_store is not None:
            self._identity_store.save(identity)
        logger.info("Identity cleared" if identity is None else "Identity updated")
        self._notify()

    def begin(self, text: str | None = None) -> SubmitResult:
        """Start an exchange for ``text`` (defaults to the draft).

        On success the user message is in the log, the draft is cleared and
        the controller awaits the first chunk; drive the exchange with
        ``run_exchange``. Any other result leaves the log and draft untouched.
        """
        if self._disposed:
            return SubmitResult.DISPOSED
        if self._state is not ChatState.IDLE:
            logger.warning("Submit rejected: an exchange is already in flight")
            return SubmitResult.BUSY

        raw = self.draft if text is None else text
        if not raw.strip():
            return SubmitResult.EMPTY

        identity = self._identity
        if identity is None or not can_send(identity):
            logger.info("Submit refused: no identity, requesting profile")
            self._request_identity()
            return SubmitResult.IDENTITY_REQUIRED

        history = self._store.messages
        self._store.append(Message(role=Role.USER, text=raw))
        self.draft = ""
        self._exchange = _Exchange(
            history=history,
            text=raw,
            display_name=identity.display_name,
            target_message_id=new_message_id(),
        )
        self._state = ChatState.AWAITING_FIRST_CHUNK
        logger.debug(f"Exchange started, reply id {self._exchange.target_message_id}")
        self._notify()
        return SubmitResult.SENT

    def _apply_chunk(self, exchange: _Exchange, content: str) -> None:
        if not exchange.first_chunk_received:
            self._store.append(
                Message(id=exchange.target_message_id, role=Role.ASSISTANT, text=content)
            )
            exchange.first_chunk_received = True
            self._state = ChatState.STREAMING
        else:
            self._store.mutate_last(exchange.target_message_id, content)
        self._notify()

    def _finish(self, exchange: _Exchange) -> None:
        if self._exchange is exchange:
            self._exchange = None
            self._state = ChatState.IDLE
        if not exchange.first_chunk_received:
            logger.warning("Exchange ended without any reply chunk")
        logger.debug("Exchange finished")
        self._notify()

    async def run_exchange(self) -> AsyncGenerator[StreamChunk]:
        """Drive the exchange started by ``begin``.

        Applies each text chunk to the log before yielding it, then yields
        one terminal chunk. Yields nothing if no exchange is pending.
        """
        exchange = self._exchange
        if exchange is None or exchange.started:
            return
        exchange.started = True

        terminal: StreamChunk | None = None
        try:
            stream = self._client.stream(exchange.history, exchange.text, exchange.display_name)
            async with aclosing(stream) as chunks:
                async for chunk in chunks:
                    if self._disposed:
                        logger.info("Session disposed mid-reply; ignoring the rest of the stream")
                        terminal = StreamChunk.failed("session disposed")
                        break
                    if chunk.done:
                        terminal = chunk
                        break
                    if not chunk.content:
                        continue
                    self._apply_chunk(exchange, chunk.content)
                    yield chunk
        except MessageNotFoundError as e:
            logger.error(f"Aborting exchange, reply is no longer the tail of the log: {e}")
            terminal = StreamChunk.failed(str(e))
        finally:
            self._finish(exchange)

        yield terminal or StreamChunk.complete()

    def abandon(self, target_message_id: str) -> bool:
        """End the exchange reserved for ``target_message_id`` if nothing drives it.

        An exchange whose ``run_exchange`` never started (e.g. the client went
        away before the first chunk was requested) would otherwise keep the
        session busy. Started exchanges are finished by ``run_exchange``.

        Returns:
            True if a pending exchange was dropped.
        """
        exchange = self._exchange
        if exchange is None or exchange.started:
            return False
        if exchange.target_message_id != target_message_id:
            return False
        logger.info(f"Abandoning exchange {target_message_id} before its reply started")
        self._finish(exchange)
        return True

    async def submit(
        self,
        text: str | None = None,
        on_sent: Callable[[], None] | None = None,
    ) -> SubmitResult:
        """Send ``text`` (defaults to the draft) and wait for the full reply.

        Args:
            text: Message to send. Uses the draft if omitted.
            on_sent: Called once the user message is in the log, before the
                reply starts streaming.
        """
        result = self.begin(text)
        exchange = self._exchange
        if result is not SubmitResult.SENT or exchange is None:
            return result
        try:
            if on_sent is not None:
                on_sent()
            async for _ in self.run_exchange():
                pass
        finally:
            self.abandon(exchange.target_message_id)
        return result

    def clear_history(self) -> bool:
        """Empty the conversation log. Only allowed while idle.

        Returns:
            True if the log was cleared.
        """
        if self._state is not ChatState.IDLE:
            logger.warning("Clear rejected: an exchange is in flight")
            return False
        self._store.clear()
        logger.info("Conversation history cleared")
        self._notify()
        return True

    def dispose(self) -> None:
        """Detach all listeners and stop reading any in-flight stream.

        The part of the reply already received stays in the log.
        """
        self._disposed = True
        self._listeners.clear()
        self._identity_listeners.clear()


def create_chat_controller(
    config: ChatConfig | None = None,
    client: ChatStreamer | None = None,
) -> AssemblyController:
    """Build a controller over file-backed storage and load its log.

    Args:
        config: Optional chat configuration. Loads from environment if not provided.
        client: Optional streaming client. Uses the global one if not provided.

    Returns:
        A loaded, idle AssemblyController.
    """
    config = config or get_chat_config()
    storage = JsonFileStorage(config.data_dir)
    identity_store = IdentityStore(storage, key=config.identity_key)
    controller = AssemblyController(
        store=SessionStore(storage, key=config.history_key, assistant_name=config.assistant_name),
        client=client or get_streaming_client(),
        identity_store=identity_store,
        identity=identity_store.load(),
    )
    controller.load()
    return controller


# Module-level singleton instance
_chat_controller: AssemblyController | None = None


def get_chat_controller() -> AssemblyController:
    """Get or create the global chat controller (one chat widget per device).

    Returns:
        The AssemblyController instance.
    """
    global _chat_controller
    if _chat_controller is None:
        _chat_controller = create_chat_controller()
    return _chat_controller


def dispose_chat_controller() -> None:
    """Dispose the global chat controller, if one was created."""
    global _chat_controller
    if _chat_controller is not None:
        _chat_controller.dispose()
        _chat_controller = None
