"""Unit tests for the identity gate and identity persistence."""

import json

import pytest
from pydantic import ValidationError

from studybot.chat.identity import IdentityStore, can_send
from studybot.chat.storage import MemoryStorage
from studybot.models.schemas import Identity

KEY = "studyWithMe_user"


class TestCanSend:
    """Tests for the can_send predicate."""

    def test_anonymous_cannot_send(self) -> None:
        """No identity means no sending."""
        assert can_send(None) is False

    def test_named_identity_can_send(self, identity: Identity) -> None:
        """An identity with a name passes the gate."""
        assert can_send(identity) is True

    def test_blank_name_cannot_send(self) -> None:
        """A blank name never passes, even if validation was bypassed."""
        assert can_send(Identity.model_construct(display_name="   ", avatar_image=None)) is False


class TestIdentityModel:
    """Tests for Identity validation."""

    def test_name_is_stripped(self) -> None:
        """Surrounding whitespace is removed from the display name."""
        assert Identity(display_name="  Lan  ").display_name == "Lan"

    def test_blank_name_is_rejected(self) -> None:
        """A whitespace-only name is not a valid identity."""
        with pytest.raises(ValidationError):
            Identity(display_name="   ")

    def test_accepts_camel_case_fields(self) -> None:
        """The persisted record uses displayName/avatarImage."""
        identity = Identity.model_validate({"displayName": "Lan", "avatarImage": "aGVsbG8="})

        assert identity.avatar_image == "aGVsbG8="

    @pytest.mark.parametrize(
        ("avatar_image", "expected"),
        [
            (None, None),
            ("", None),
            ("aGVsbG8=", "data:image/png;base64,aGVsbG8="),
            ("data:image/jpeg;base64,aGVsbG8=", "data:image/jpeg;base64,aGVsbG8="),
        ],
    )
    def test_avatar_src(self, avatar_image: str | None, expected: str | None) -> None:
        """Data URLs are used as stored; bare base64 is read as PNG."""
        identity = Identity(display_name="Lan", avatar_image=avatar_image)

        assert identity.avatar_src == expected

    def test_is_immutable(self, identity: Identity) -> None:
        """Identities are replaced, never edited in place."""
        with pytest.raises(ValidationError):
            identity.display_name = "Other"  # type: ignore[misc]


class TestIdentityStore:
    """Tests for IdentityStore persistence."""

    def test_missing_record_is_anonymous(self, memory_storage: MemoryStorage) -> None:
        """No record reads as no identity."""
        assert IdentityStore(memory_storage).load() is None

    def test_save_and_load(self, memory_storage: MemoryStorage) -> None:
        """A saved identity loads back equal."""
        store = IdentityStore(memory_storage)
        identity = Identity(display_name="Lan", avatar_image="aGVsbG8=")

        store.save(identity)

        assert store.load() == identity

    def test_record_is_flat_camel_case(self, memory_storage: MemoryStorage) -> None:
        """The stored record is {displayName, avatarImage}."""
        IdentityStore(memory_storage).save(Identity(display_name="Lan"))

        assert json.loads(memory_storage.records[KEY]) == {
            "displayName": "Lan",
            "avatarImage": None,
        }

    def test_save_none_removes_record(self, memory_storage: MemoryStorage) -> None:
        """Saving None forgets the identity."""
        store = IdentityStore(memory_storage)
        store.save(Identity(display_name="Lan"))

        store.save(None)

        assert KEY not in memory_storage.records

    @pytest.mark.parametrize("payload", ["{", "[]", '{"displayName": ""}'])
    def test_corrupt_record_is_anonymous(self, payload: str) -> None:
        """A corrupt identity record reads as anonymous."""
        store = IdentityStore(MemoryStorage({KEY: payload}))

        assert store.load() is None
