"""Durable record storage for the chat engine.

Records are opaque UTF-8 strings stored under fixed keys. Only the session
store and the identity store know what is inside them.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a record cannot be read, written or removed."""

    pass


class RecordStorage(Protocol):
    """Key/value storage for persisted records."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, data: str) -> None: ...

    def remove(self, key: str) -> None: ...


class JsonFileStorage:
    """Stores each record as ``<directory>/<key>.json``.

    Writes go to a temporary file that replaces the record, so a crash
    mid-write leaves the previous record intact.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def read(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read record {key!r}: {e}") from e

    def write(self, key: str, data: str) -> None:
        path = self._path(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write record {key!r}: {e}") from e
        logger.debug(f"Wrote record {key} ({len(data)} chars)")

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove record {key!r}: {e}") from e


class MemoryStorage:
    """In-process storage, used by tests and throwaway sessions."""

    def __init__(self, records: dict[str, str] | None = None) -> None:
        self.records: dict[str, str] = dict(records or {})

    def read(self, key: str) -> str | None:
        return self.records.get(key)

    def write(self, key: str, data: str) -> None:
        self.records[key] = data

    def remove(self, key: str) -> None:
        self.records.pop(key, None)
