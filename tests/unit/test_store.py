"""Unit tests for SessionStore."""

import json
import logging

import pytest
import pytest_check as check

from studybot.chat.storage import MemoryStorage, StorageError
from studybot.chat.store import (
    WELCOME_MESSAGE_ID,
    MessageNotFoundError,
    PersistenceCorruptError,
    SessionStore,
    decode_log,
    welcome_message,
)
from studybot.models.schemas import Message, Role

KEY = "studyWithMe_chatHistory"


class BrokenStorage(MemoryStorage):
    """Storage whose writes and removals always fail."""

    def write(self, key: str, data: str) -> None:
        raise StorageError("disk full")

    def remove(self, key: str) -> None:
        raise StorageError("read-only")


def _assistant(text: str, message_id: str = "reply-1") -> Message:
    return Message(id=message_id, role=Role.ASSISTANT, text=text)


class TestLoad:
    """Tests for loading the conversation log."""

    def test_fresh_store_seeds_welcome_with_name(self, session_store: SessionStore) -> None:
        """No persisted log yields exactly one welcome message naming the user."""
        log = session_store.load("Lan")

        check.equal(len(log), 1)
        check.equal(log[0].id, WELCOME_MESSAGE_ID)
        check.equal(log[0].role, Role.ASSISTANT)
        check.is_in("Lan", log[0].text)

    def test_anonymous_welcome_uses_generic_name(self, session_store: SessionStore) -> None:
        """Without a name the welcome message greets generically."""
        log = session_store.load(None)

        assert log[0].text.startswith("Chào bạn!")

    def test_seeded_welcome_is_persisted(
        self, session_store: SessionStore, memory_storage: MemoryStorage
    ) -> None:
        """The seeded log is saved right away."""
        session_store.load("Lan")

        assert KEY in memory_storage.records

    def test_round_trip_is_identical(self, memory_storage: MemoryStorage) -> None:
        """load(); save(); load() yields the same log."""
        store = SessionStore(memory_storage)
        store.load("Lan")
        store.append(Message(role=Role.USER, text="2+2?"))
        store.append(_assistant("4 is the answer."))

        first = store.load()
        store.save()
        second = store.load()

        assert first == second
        assert SessionStore(memory_storage).load() == first

    def test_round_trip_of_seeded_log(self, session_store: SessionStore) -> None:
        """The welcome-only log survives a save/load cycle unchanged."""
        first = session_store.load("Lan")
        session_store.save()

        assert session_store.load("Someone else") == first

    @pytest.mark.parametrize(
        "payload",
        [
            "not json at all",
            "{}",
            '[{"id": "1", "role": "robot", "text": "hi", "createdAt": "2026-01-01T00:00:00Z"}]',
            '[{"id": "1", "role": "user"}]',
        ],
    )
    def test_corrupt_log_fails_open_to_welcome(self, payload: str) -> None:
        """Malformed persisted bytes yield the welcome log, never an exception."""
        store = SessionStore(MemoryStorage({KEY: payload}))

        log = store.load("Lan")

        check.equal(len(log), 1)
        check.equal(log[0].id, WELCOME_MESSAGE_ID)

    def test_corrupt_log_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Discarding a corrupt log leaves a warning."""
        store = SessionStore(MemoryStorage({KEY: "[oops"}))

        with caplog.at_level(logging.WARNING):
            store.load()

        assert "corrupt" in caplog.text.lower()

    def test_legacy_model_role_is_read_as_assistant(self) -> None:
        """Records from the older widget used role "model"."""
        payload = json.dumps(
            [{"id": "1", "role": "model", "text": "Hi", "createdAt": "2026-01-01T00:00:00Z"}]
        )
        store = SessionStore(MemoryStorage({KEY: payload}))

        assert store.load()[0].role is Role.ASSISTANT

    def test_duplicate_ids_are_corrupt(self) -> None:
        """A persisted log with repeated ids is rejected."""
        message = {"id": "1", "role": "user", "text": "a", "createdAt": "2026-01-01T00:00:00Z"}

        with pytest.raises(PersistenceCorruptError):
            decode_log(json.dumps([message, message]))


class TestAppend:
    """Tests for appending messages."""

    def test_appends_at_tail_in_order(self, session_store: SessionStore) -> None:
        """Messages keep insertion order."""
        session_store.load("Lan")
        session_store.append(Message(role=Role.USER, text="first"))
        session_store.append(Message(role=Role.USER, text="second"))

        texts = [message.text for message in session_store.messages]
        assert texts[1:] == ["first", "second"]

    def test_rejects_duplicate_id(self, session_store: SessionStore) -> None:
        """Appending an id already in the log raises."""
        session_store.load("Lan")

        with pytest.raises(ValueError, match="Duplicate"):
            session_store.append(_assistant("again", message_id=WELCOME_MESSAGE_ID))

    def test_snapshot_is_detached_from_log(self, session_store: SessionStore) -> None:
        """Mutating a snapshot does not change the log."""
        session_store.load("Lan")
        snapshot = session_store.messages

        snapshot[0].text = "tampered"

        assert session_store.messages[0].text != "tampered"

    def test_persistence_failure_is_swallowed(self, caplog: pytest.LogCaptureFixture) -> None:
        """A failing write is logged; the in-memory log stays authoritative."""
        store = SessionStore(BrokenStorage())
        store.load("Lan")

        with caplog.at_level(logging.ERROR):
            store.append(Message(role=Role.USER, text="still here"))

        check.equal(store.messages[-1].text, "still here")
        check.is_in("Failed to persist", caplog.text)


class TestMutateLast:
    """Tests for growing the tail message."""

    def test_concatenates_deltas_in_order(self, session_store: SessionStore) -> None:
        """Deltas are appended exactly, without trimming."""
        session_store.load("Lan")
        session_store.append(_assistant("4"))

        session_store.mutate_last("reply-1", " is the")
        session_store.mutate_last("reply-1", " answer. ")

        assert session_store.messages[-1].text == "4 is the answer. "

    def test_each_mutation_is_persisted(
        self, session_store: SessionStore, memory_storage: MemoryStorage
    ) -> None:
        """The stored record reflects the latest delta."""
        session_store.load("Lan")
        session_store.append(_assistant("4"))
        session_store.mutate_last("reply-1", "2")

        assert SessionStore(memory_storage).load()[-1].text == "42"

    def test_rejects_id_that_is_not_the_tail(self, session_store: SessionStore) -> None:
        """Only the tail may grow."""
        session_store.load("Lan")
        session_store.append(_assistant("4"))
        session_store.append(Message(role=Role.USER, text="next"))

        with pytest.raises(MessageNotFoundError):
            session_store.mutate_last("reply-1", "!")

    def test_rejects_user_tail(self, session_store: SessionStore) -> None:
        """A user message is never grown."""
        session_store.load("Lan")
        user = Message(role=Role.USER, text="hi")
        session_store.append(user)

        with pytest.raises(MessageNotFoundError):
            session_store.mutate_last(user.id, "!")

    def test_rejects_empty_log(self, session_store: SessionStore) -> None:
        """Nothing to grow in an empty log."""
        with pytest.raises(MessageNotFoundError):
            session_store.mutate_last("reply-1", "!")


class TestClear:
    """Tests for clearing the log."""

    def test_clear_removes_record(
        self, session_store: SessionStore, memory_storage: MemoryStorage
    ) -> None:
        """Clearing empties the log and its persisted record."""
        session_store.load("Lan")

        session_store.clear()

        check.equal(len(session_store), 0)
        check.is_not_in(KEY, memory_storage.records)

    def test_load_after_clear_is_empty(self, session_store: SessionStore) -> None:
        """No seed-on-clear: the same store loads an empty log."""
        session_store.load("Lan")
        session_store.clear()

        assert session_store.load("Lan") == ()

    def test_new_store_after_clear_seeds_welcome(
        self, session_store: SessionStore, memory_storage: MemoryStorage
    ) -> None:
        """The next session starts with the welcome message again."""
        session_store.load("Lan")
        session_store.clear()

        log = SessionStore(memory_storage).load("Lan")

        assert [message.id for message in log] == [WELCOME_MESSAGE_ID]

    def test_clear_failure_is_swallowed(self) -> None:
        """A failing removal does not raise."""
        store = SessionStore(BrokenStorage())
        store.load("Lan")

        store.clear()

        assert len(store) == 0


def test_welcome_message_mentions_product() -> None:
    """The welcome text names the assistant product."""
    message = welcome_message("Lan", assistant_name="StudyWithMe")

    assert "StudyWithMe" in message.text
