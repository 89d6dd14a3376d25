"""
Note Repository

Persistence gateway for Note entities: the only component that talks to the
database. Each operation checks out one pooled connection for its own
duration and translates store failures into the typed errors of
``supernote.core.exceptions``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from supernote.core.exceptions import (
    NoteDeleteError,
    NoteNotFoundError,
    NoteOperationCancelledError,
    NoteReadError,
    NoteStoreError,
    NoteValidationError,
    NoteWriteError,
)
from supernote.models import Note, NoteMatch, NoteMetadata

logger = logging.getLogger(__name__)

# Errors the driver can raise that mean "the store failed", not "bad input"
STORE_ERRORS = (SQLAlchemyError, OSError)


def encode_metadata(metadata: Any) -> NoteMetadata:
    """
    Normalize metadata through a JSON round trip.

    What is written is exactly what will be read back: tuples become lists,
    non-string keys are rejected by ``json.dumps``, NaN/Infinity are refused
    because PostgreSQL JSONB cannot store them.

    Raises:
        NoteWriteError: If the value is not a JSON-serializable object.
    """
    if metadata is None:
        return {}
    try:
        normalized = json.loads(json.dumps(metadata, allow_nan=False))
    except (TypeError, ValueError) as exc:
        raise NoteWriteError(
            "Failed to serialize note metadata", {"reason": str(exc)}
        ) from exc
    if not isinstance(normalized, dict):
        raise NoteWriteError(
            "Note metadata must be a JSON object",
            {"type": type(metadata).__name__},
        )
    return normalized


def decode_metadata(raw: Any) -> NoteMetadata:
    """
    Turn a stored metadata value back into a mapping.

    JSONB arrives already decoded; a text column (legacy schema) holds a JSON
    document; NULL maps to an empty object.

    Raises:
        NoteReadError: If the value does not decode to a JSON object.
    """
    if raw is None:
        return {}
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise NoteReadError("Failed to deserialize note metadata") from exc
    if not isinstance(raw, dict):
        raise NoteReadError(
            "Stored note metadata is not a JSON object",
            {"type": type(raw).__name__},
        )
    return raw


class NoteRepository:
    """
    Repository for Note entities with vector search support.

    Owns the session factory (and therefore the connection pool). Every
    public method accepts an optional ``timeout`` in seconds overriding the
    repository default; an expired deadline cancels the in-flight query and
    raises NoteOperationCancelledError.

    Key guarantees:
        - ``insert``: id generated when missing, timestamps from the stored row.
        - ``list_notes``: newest first, empty list when nothing matches.
        - ``search_by_similarity``: nearest first (ascending cosine distance),
          never more than ``limit`` results.
        - ``get_by_id`` / ``delete``: NoteNotFoundError when no row matches.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        default_timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._default_timeout = default_timeout

    @asynccontextmanager
    async def _deadline(
        self, operation: str, timeout: float | None
    ) -> AsyncIterator[None]:
        limit = self._default_timeout if timeout is None else timeout
        try:
            async with asyncio.timeout(limit):
                yield
        except TimeoutError as exc:
            logger.warning("Note %s aborted after %ss deadline", operation, limit)
            raise NoteOperationCancelledError(
                f"Note {operation} exceeded its deadline",
                {"operation": operation, "timeout": limit},
            ) from exc

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def insert(self, note: Note, *, timeout: float | None = None) -> Note:
        """
        Persist a new note.

        Args:
            note: Transient Note with ``title`` and ``content`` set.
                ``id`` is generated when None.
            timeout: Deadline override in seconds.

        Returns:
            The same note with ``id``, ``created_at`` and ``updated_at``
            populated from the stored row.

        Raises:
            NoteValidationError: If title or content is missing.
            NoteWriteError: If metadata cannot be serialized or the store
                rejects the insert.
        """
        if not note.title or not note.content:
            raise NoteValidationError("Note title and content are required")

        note.note_metadata = encode_metadata(note.note_metadata)
        if note.id is None:
            note.id = uuid.uuid4()

        async with self._deadline("insert", timeout):
            try:
                async with self._session_factory() as session:
                    session.add(note)
                    await session.commit()
                    await session.refresh(note)  # Load DB-generated timestamps
            except STORE_ERRORS as exc:
                raise NoteWriteError(
                    "Failed to insert note", {"note_id": str(note.id)}
                ) from exc

        logger.info("Inserted note %s", note.id)
        return note

    async def delete(self, note_id: uuid.UUID, *, timeout: float | None = None) -> None:
        """
        Delete a note by id.

        Raises:
            NoteNotFoundError: If no row was affected.
            NoteDeleteError: On any other store failure.
        """
        async with self._deadline("delete", timeout):
            try:
                async with self._session_factory() as session:
                    result = await session.execute(delete(Note).where(Note.id == note_id))
                    affected = result.rowcount
                    await session.commit()
            except STORE_ERRORS as exc:
                raise NoteDeleteError(
                    "Failed to delete note", {"note_id": str(note_id)}
                ) from exc

        if affected == 0:
            raise NoteNotFoundError("Note not found", {"note_id": str(note_id)})
        logger.info("Deleted note %s", note_id)

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get_by_id(
        self, note_id: uuid.UUID, *, timeout: float | None = None
    ) -> Note:
        """
        Fetch a single note.

        Raises:
            NoteNotFoundError: If no note has this id.
            NoteReadError: On store failure or undecodable metadata.
        """
        async with self._deadline("get", timeout):
            try:
                async with self._session_factory() as session:
                    result = await session.execute(select(Note).where(Note.id == note_id))
                    note = result.scalars().first()
            except STORE_ERRORS as exc:
                raise NoteReadError(
                    "Failed to get note", {"note_id": str(note_id)}
                ) from exc

        if note is None:
            raise NoteNotFoundError("Note not found", {"note_id": str(note_id)})
        note.note_metadata = decode_metadata(note.note_metadata)
        return note

    async def list_notes(
        self,
        limit: int = 20,
        offset: int = 0,
        *,
        timeout: float | None = None,
    ) -> Sequence[Note]:
        """
        List notes, newest first, with offset-based pagination.

        Raises:
            NoteValidationError: If a bound is negative.
            NoteReadError: On store failure or undecodable metadata.
        """
        if limit < 0 or offset < 0:
            raise NoteValidationError(
                "Pagination bounds must be non-negative",
                {"limit": limit, "offset": offset},
            )

        stmt = (
            select(Note)
            .order_by(Note.created_at.desc(), Note.id)
            .offset(offset)
            .limit(limit)
        )
        async with self._deadline("list", timeout):
            try:
                async with self._session_factory() as session:
                    result = await session.execute(stmt)
                    notes = result.scalars().all()
            except STORE_ERRORS as exc:
                raise NoteReadError("Failed to list notes") from exc

        for note in notes:
            note.note_metadata = decode_metadata(note.note_metadata)
        return notes

    async def search_by_similarity(
        self,
        query_embedding: Sequence[float],
        limit: int = 5,
        *,
        timeout: float | None = None,
    ) -> list[NoteMatch]:
        """
        Nearest-neighbour search using pgvector cosine distance (``<=>``).

        Notes without an embedding are skipped. The distance is returned as
        is: lower means more similar.

        Args:
            query_embedding: Query vector, same dimension as stored embeddings.
            limit: Maximum number of results.
            timeout: Deadline override in seconds.

        Returns:
            NoteMatch tuples ordered by ascending distance.

        Raises:
            NoteValidationError: If the vector is empty or limit is negative.
            NoteReadError: On store failure (including dimension mismatch).
        """
        if not query_embedding:
            raise NoteValidationError("Query embedding must not be empty")
        if limit < 0:
            raise NoteValidationError("Search limit must be non-negative")
        if limit == 0:
            return []

        distance = Note.embedding.cosine_distance(list(query_embedding)).label(
            "similarity_score"
        )
        stmt = (
            select(Note, distance)
            .where(Note.embedding.isnot(None))
            .order_by(distance)
            .limit(limit)
        )
        async with self._deadline("search", timeout):
            try:
                async with self._session_factory() as session:
                    result = await session.execute(stmt)
                    rows = result.all()
            except STORE_ERRORS as exc:
                raise NoteReadError("Failed to search notes") from exc

        matches = []
        for note, score in rows:
            note.note_metadata = decode_metadata(note.note_metadata)
            matches.append(NoteMatch(note=note, similarity_score=float(score)))
        return matches

    async def ping(self, *, timeout: float | None = None) -> None:
        """
        Round-trip ``SELECT 1`` through the pool.

        Raises:
            NoteStoreError: If the database is unreachable.
        """
        async with self._deadline("ping", timeout):
            try:
                async with self._session_factory() as session:
                    await session.execute(text("SELECT 1"))
            except STORE_ERRORS as exc:
                raise NoteStoreError("Database unreachable") from exc
