"""Models package - re-exports all models for convenient imports."""

from supernote.models.base import Base, TimestampMixin
from supernote.models.note import (
    EMBEDDING_DIMENSION,
    Note,
    NoteMatch,
    NoteMetadata,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "EMBEDDING_DIMENSION",
    "Note",
    "NoteMatch",
    "NoteMetadata",
]
