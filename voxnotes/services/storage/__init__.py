"""
Storage module - Durable media and the annotation store.
"""

from voxnotes.services.storage.medium import (
    DurableMedium,
    FileMedium,
    MemoryMedium,
    SQLiteMedium,
    create_medium,
)
from voxnotes.services.storage.store import STORAGE_KEY, AnnotationStore

__all__ = [
    "STORAGE_KEY",
    "AnnotationStore",
    "DurableMedium",
    "FileMedium",
    "MemoryMedium",
    "SQLiteMedium",
    "create_medium",
]
