"""
Durable media: string-keyed, string-valued get / set / remove.

The annotation store keeps its whole collection under one key of a medium.
Media raise ``StorageError`` when the underlying storage cannot be read or
written; they never interpret the values they hold.
"""

import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from voxnotes.core.exceptions import StorageError
from voxnotes.services.storage.database import create_db_engine, init_db, session_scope
from voxnotes.services.storage.models_db import KeyValueEntry


class DurableMedium(ABC):
    """Interface that every durable medium must implement."""

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the value stored under *key*, or None if absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove *key*; a no-op if it is absent."""


class MemoryMedium(DurableMedium):
    """Process-local medium backed by a dict (tests, throwaway sessions)."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileMedium(DurableMedium):
    """One UTF-8 file per key inside *directory*.

    Writes go to a temporary file in the same directory and are moved into
    place, so a crash mid-write leaves the previous value intact.
    """

    _UNSAFE = re.compile(r"[^A-Za-z0-9._-]")

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{self._UNSAFE.sub('_', key)}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Could not read {path}: {exc}") from exc

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Could not write {path}: {exc}") from exc

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not remove {path}: {exc}") from exc


class SQLiteMedium(DurableMedium):
    """Key-value rows in a ``kv_store`` table, accessed through SQLAlchemy.

    Args:
        url: SQLAlchemy database URL (e.g. ``sqlite:///data/voxnotes.db``).
    """

    def __init__(self, url: str) -> None:
        self._engine = create_db_engine(url)
        init_db(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)

    def get_item(self, key: str) -> str | None:
        try:
            with session_scope(self._session_factory) as session:
                entry = session.get(KeyValueEntry, key)
                return entry.value if entry is not None else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not read key {key!r}: {exc}") from exc

    def set_item(self, key: str, value: str) -> None:
        try:
            with session_scope(self._session_factory) as session:
                session.merge(KeyValueEntry(key=key, value=value))
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not write key {key!r}: {exc}") from exc

    def remove_item(self, key: str) -> None:
        try:
            with session_scope(self._session_factory) as session:
                entry = session.get(KeyValueEntry, key)
                if entry is not None:
                    session.delete(entry)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not remove key {key!r}: {exc}") from exc

    def close(self) -> None:
        """Dispose the engine's connection pool."""
        self._engine.dispose()


def create_medium(backend: str, **kwargs) -> DurableMedium:
    """Factory function to create a durable medium.

    Args:
        backend: Medium name ("memory", "file", "sqlite").
        **kwargs: Medium-specific configuration (``directory`` / ``url``).

    Raises:
        ValueError: If backend is unknown.
    """
    if backend == "memory":
        return MemoryMedium()
    elif backend == "file":
        return FileMedium(kwargs.get("directory", "data"))
    elif backend == "sqlite":
        return SQLiteMedium(kwargs["url"])
    else:
        raise ValueError(f"Unknown storage backend: {backend}")
