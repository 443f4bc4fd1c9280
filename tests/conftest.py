"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - memory_storage: In-process record storage
    - session_store: Session store over memory_storage
    - identity: A ready-to-chat user identity
    - fake_client: Scripted streaming client, no network
    - controller: Loaded controller for an identified user
    - async_client: HTTPX client for API testing, wired to ``controller``
"""

from collections.abc import AsyncGenerator, Callable, Sequence

import pytest
from httpx import ASGITransport, AsyncClient

from studybot.api import app
from studybot.chat.controller import AssemblyController, get_chat_controller
from studybot.chat.identity import IdentityStore
from studybot.chat.storage import MemoryStorage
from studybot.chat.store import SessionStore
from studybot.models.schemas import Identity, Message, StreamChunk


class FakeStreamingClient:
    """Streams a scripted reply and records every call.

    Attributes:
        chunks: Text chunks to emit, in order.
        terminal: Terminal chunk emitted after the text chunks.
        on_chunk: Optional hook called with the index of each chunk after it
            has been consumed.
        calls: ``(history, new_text, display_name)`` of every call.
    """

    def __init__(
        self,
        chunks: Sequence[str] = (),
        terminal: StreamChunk | None = None,
    ) -> None:
        self.chunks = list(chunks)
        self.terminal = terminal or StreamChunk.complete()
        self.on_chunk: Callable[[int], None] | None = None
        self.calls: list[tuple[list[Message], str, str]] = []
        self.closed = False

    async def stream(
        self,
        history: Sequence[Message],
        new_text: str,
        display_name: str,
    ) -> AsyncGenerator[StreamChunk]:
        self.calls.append((list(history), new_text, display_name))
        try:
            for index, text in enumerate(self.chunks):
                yield StreamChunk.text(text)
                if self.on_chunk is not None:
                    self.on_chunk(index)
            yield self.terminal
        finally:
            self.closed = True


@pytest.fixture
def memory_storage() -> MemoryStorage:
    """Return empty in-process storage."""
    return MemoryStorage()


@pytest.fixture
def session_store(memory_storage: MemoryStorage) -> SessionStore:
    """Return a session store over memory_storage (not yet loaded)."""
    return SessionStore(memory_storage)


@pytest.fixture
def identity() -> Identity:
    """Return an identity that passes the gate."""
    return Identity(display_name="Lan")


@pytest.fixture
def fake_client() -> FakeStreamingClient:
    """Return a client streaming the reply to "2+2?"."""
    return FakeStreamingClient(["4", " is the", " answer."])


@pytest.fixture
def controller(
    session_store: SessionStore,
    memory_storage: MemoryStorage,
    fake_client: FakeStreamingClient,
    identity: Identity,
) -> AssemblyController:
    """Return a loaded, idle controller for an identified user."""
    chat = AssemblyController(
        store=session_store,
        client=fake_client,
        identity_store=IdentityStore(memory_storage),
        identity=identity,
    )
    chat.load()
    return chat


@pytest.fixture
async def async_client(controller: AssemblyController) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    The app's chat session is replaced by the ``controller`` fixture.

    Yields:
        Configured AsyncClient for making test requests.
    """
    app.dependency_overrides[get_chat_controller] = lambda: controller
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
