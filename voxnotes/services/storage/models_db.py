"""
SQLAlchemy ORM model for the key-value durable medium.

Table: ``kv_store`` (one row per storage key).
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from voxnotes.services.storage.database import Base


class KeyValueEntry(Base):
    """A single string value stored under a string key."""

    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, default="")

    def __repr__(self) -> str:
        return f"<KeyValueEntry key={self.key!r} length={len(self.value or '')}>"
