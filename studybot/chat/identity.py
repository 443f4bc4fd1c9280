"""Identity gate and identity record persistence.

A missing identity is a valid state (anonymous), not an error: the gate
simply refuses to send and the UI asks for a profile.
"""

import logging

from pydantic import ValidationError

from studybot.chat.storage import RecordStorage, StorageError
from studybot.models.schemas import Identity

logger = logging.getLogger(__name__)


def can_send(identity: Identity | None) -> bool:
    """Return True iff the identity is present and has a non-empty name."""
    return identity is not None and bool(identity.display_name.strip())


class IdentityStore:
    """Persists the identity record ``{displayName, avatarImage}``."""

    def __init__(self, storage: RecordStorage, key: str = "studyWithMe_user") -> None:
        self._storage = storage
        self._key = key

    def load(self) -> Identity | None:
        """Load the stored identity; unreadable or corrupt records read as anonymous."""
        try:
            data = self._storage.read(self._key)
        except StorageError as e:
            logger.warning(f"Could not read identity record: {e}")
            return None
        if data is None:
            return None

        try:
            return Identity.model_validate_json(data)
        except ValidationError as e:
            logger.warning(f"Discarding corrupt identity record: {e.error_count()} errors")
            return None

    def save(self, identity: Identity | None) -> None:
        """Replace the stored identity, or remove it when ``identity`` is None."""
        try:
            if identity is None:
                self._storage.remove(self._key)
            else:
                self._storage.write(self._key, identity.model_dump_json(by_alias=True))
        except StorageError as e:
            logger.error(f"Failed to persist identity record: {e}")
