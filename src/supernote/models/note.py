"""
Note Model

Core entity for storing notes with vector embeddings for semantic search.
Uses pgvector extension for nearest-neighbour queries.
"""

from __future__ import annotations

import uuid
from typing import Any, NamedTuple, TypeAlias

from pgvector.sqlalchemy import Vector
from pydantic import JsonValue
from sqlalchemy import Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from supernote.models.base import Base, TimestampMixin

# Output size of Gemini text-embedding-004
EMBEDDING_DIMENSION: int = 768

NoteMetadata: TypeAlias = dict[str, JsonValue]


class Note(Base, TimestampMixin):
    """
    Note entity with vector embedding support.

    Attributes:
        id: UUID primary key (generated Python-side when absent).
        user_id: Optional owner reference, no foreign key.
        title: Note title.
        content: Full note content.
        chunk_content: Optional text segment the embedding was computed from.
        embedding: 768-dim vector (nullable until an embedding is generated).
        note_metadata: Free-form JSON object, stored in the ``metadata`` column.
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    chunk_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(EMBEDDING_DIMENSION),
        nullable=True,
    )
    # "metadata" is reserved on declarative classes
    note_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id!s:.8}, title='{self.title[:20]}...')>"


class NoteMatch(NamedTuple):
    """A note paired with its cosine distance to the query (lower = closer)."""

    note: Note
    similarity_score: float
