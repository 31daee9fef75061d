"""
Annotation persistence over a single-key durable medium.

The whole collection is serialized as one JSON array under one key, so every
write is a read-modify-write of the full collection. This assumes a single
logical writer (one session); concurrent writers would race and the last
write would win.
"""

import logging
import secrets
import string
import time
from typing import Any

from pydantic import TypeAdapter, ValidationError

from voxnotes.core.exceptions import CorruptStoreError
from voxnotes.core.models import AnnotationRecord
from voxnotes.services.storage.medium import DurableMedium

logger = logging.getLogger(__name__)

STORAGE_KEY = "whisper-web-annotations"

_ID_ALPHABET = string.ascii_lowercase + string.digits
_RECORD = TypeAdapter(AnnotationRecord)
_RECORDS = TypeAdapter(list[AnnotationRecord])
_RAW_ITEMS = TypeAdapter(list[Any])


class AnnotationStore:
    """CRUD over the set of ``AnnotationRecord`` values.

    Reads never fail on bad content: a missing key yields an empty list, a
    value that is not a JSON array is logged and treated as empty, and an
    individual invalid record is logged and skipped while its neighbours are
    kept. Failures of the medium itself (``StorageError``) propagate from
    writes.

    Args:
        medium: Where the serialized collection lives.
        key: The storage key the collection is kept under.
    """

    def __init__(self, medium: DurableMedium, key: str = STORAGE_KEY) -> None:
        self._medium = medium
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all(self) -> list[AnnotationRecord]:
        """Return all records in stored order (empty on missing or corrupt data)."""
        try:
            return self._load()
        except CorruptStoreError as exc:
            logger.warning("Ignoring corrupt annotation store %r: %s", self._key, exc.detail)
            return []

    def get_by_id(self, annotation_id: str) -> AnnotationRecord | None:
        """Return the record with *annotation_id*, or None if absent."""
        for record in self.get_all():
            if record.id == annotation_id:
                return record
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, record: AnnotationRecord) -> None:
        """Insert *record*, or replace the record with the same id in place.

        *record* must be complete; no field merging happens here.
        """
        records = self._load_for_write()
        for index, existing in enumerate(records):
            if existing.id == record.id:
                records[index] = record
                logger.debug("Replacing annotation %s at position %d", record.id, index)
                break
        else:
            records.append(record)
            logger.debug("Appending annotation %s", record.id)
        self._write(records)

    def delete(self, annotation_id: str) -> None:
        """Remove the record with *annotation_id*; a no-op if absent."""
        records = self._load_for_write()
        remaining = [r for r in records if r.id != annotation_id]
        if len(remaining) == len(records):
            logger.debug("Delete of unknown annotation %s ignored", annotation_id)
            return
        self._write(remaining)
        logger.info("Deleted annotation %s", annotation_id)

    def clear(self) -> None:
        """Remove the whole collection from the medium."""
        self._medium.remove_item(self._key)

    @staticmethod
    def generate_id() -> str:
        """Return a new id: millisecond timestamp plus 9 random base-36 chars."""
        suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
        return f"annotation_{time.time_ns() // 1_000_000}_{suffix}"

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _load(self) -> list[AnnotationRecord]:
        raw = self._medium.get_item(self._key)
        if not raw:
            return []
        try:
            items = _RAW_ITEMS.validate_json(raw)
        except ValidationError as exc:
            raise CorruptStoreError("stored annotations are not a JSON array") from exc

        records = []
        for index, item in enumerate(items):
            try:
                records.append(_RECORD.validate_python(item))
            except ValidationError as exc:
                logger.warning(
                    "Skipping invalid annotation at position %d in %r: %d error(s)",
                    index,
                    self._key,
                    exc.error_count(),
                )
        return self._dedupe(records)

    def _load_for_write(self) -> list[AnnotationRecord]:
        try:
            return self._load()
        except CorruptStoreError as exc:
            logger.warning("Replacing corrupt annotation store %r: %s", self._key, exc.detail)
            return []

    def _write(self, records: list[AnnotationRecord]) -> None:
        self._medium.set_item(self._key, _RECORDS.dump_json(records, by_alias=True).decode())

    @staticmethod
    def _dedupe(records: list[AnnotationRecord]) -> list[AnnotationRecord]:
        # Externally edited data may repeat an id; keep one entry, latest value
        positions: dict[str, int] = {}
        result: list[AnnotationRecord] = []
        for record in records:
            if record.id in positions:
                logger.warning("Duplicate annotation id %s in store; keeping the later entry", record.id)
                result[positions[record.id]] = record
            else:
                positions[record.id] = len(result)
                result.append(record)
        return result
