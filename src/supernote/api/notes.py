"""
Notes API Router

REST endpoints for note CRUD operations, plus the search and chat
placeholders. Each endpoint performs at most one repository call and is the
only place where repository errors become HTTP status codes.
"""

from __future__ import annotations

import logging
import re
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from supernote.api.dependencies import get_note_repository
from supernote.core.exceptions import (
    NoteError,
    NoteNotFoundError,
    NoteOperationCancelledError,
    NoteValidationError,
)
from supernote.models import Note
from supernote.repositories.notes import NoteRepository
from supernote.schemas.notes import (
    MessageResponse,
    NoteCreate,
    NoteEnvelope,
    NoteListResponse,
    NoteRead,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_LIMIT = 20
DEFAULT_OFFSET = 0

# Largest value a PostgreSQL BIGINT bind parameter accepts
MAX_BOUND = 2**63 - 1

_INTEGER = re.compile(r"[+-]?[0-9]+")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_bound(raw: str | None, default: int, minimum: int) -> int:
    """
    Lenient integer query parsing: anything invalid falls back to default.

    Only plain optionally signed decimal digits are accepted (no whitespace,
    underscores or non-ASCII digits), within ``[minimum, MAX_BOUND]``.
    """
    if raw is None or not _INTEGER.fullmatch(raw):
        return default
    value = int(raw)
    return value if minimum <= value <= MAX_BOUND else default


def _parse_note_id(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid note ID"
        ) from None


def _to_http_error(exc: NoteError, action: str) -> HTTPException:
    """
    Map a repository error to an HTTP error.

    Store causes are logged here and never sent to the client.
    """
    if isinstance(exc, NoteNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Note not found"
        )
    if isinstance(exc, NoteValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, NoteOperationCancelledError):
        logger.warning("Timed out while trying to %s: %s", action, exc.details)
        return HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"Timed out while trying to {action}",
        )

    logger.error("Failed to %s: %s %s", action, exc.message, exc.details, exc_info=exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


@router.get("/notes", response_model=NoteListResponse)
async def list_notes(
    limit: str | None = None,
    offset: str | None = None,
    repo: NoteRepository = Depends(get_note_repository),
) -> NoteListResponse:
    """
    List notes, newest first.

    Invalid or non-positive ``limit`` falls back to 20; invalid or negative
    ``offset`` falls back to 0.
    """
    page_limit = _parse_bound(limit, DEFAULT_LIMIT, minimum=1)
    page_offset = _parse_bound(offset, DEFAULT_OFFSET, minimum=0)

    try:
        notes = await repo.list_notes(page_limit, page_offset)
    except NoteError as exc:
        raise _to_http_error(exc, "retrieve notes") from exc

    return NoteListResponse(
        notes=[NoteRead.model_validate(note) for note in notes],
        limit=page_limit,
        offset=page_offset,
        count=len(notes),
    )


@router.post(
    "/notes", response_model=NoteEnvelope, status_code=status.HTTP_201_CREATED
)
async def create_note(
    payload: NoteCreate,
    repo: NoteRepository = Depends(get_note_repository),
) -> NoteEnvelope:
    """
    Create a new note.

    The note is stored without an embedding; it will not appear in
    similarity search until one is generated.
    """
    note = Note(
        title=payload.title,
        content=payload.content,
        chunk_content=payload.chunk_content,
        user_id=payload.user_id,
        note_metadata=payload.metadata,
    )
    try:
        created = await repo.insert(note)
    except NoteError as exc:
        raise _to_http_error(exc, "create note") from exc

    return NoteEnvelope(note=NoteRead.model_validate(created))


@router.get("/notes/{note_id}", response_model=NoteEnvelope)
async def read_note(
    note_id: str,
    repo: NoteRepository = Depends(get_note_repository),
) -> NoteEnvelope:
    """Retrieve a single note by ID."""
    parsed_id = _parse_note_id(note_id)

    try:
        note = await repo.get_by_id(parsed_id)
    except NoteError as exc:
        raise _to_http_error(exc, "retrieve note") from exc

    return NoteEnvelope(note=NoteRead.model_validate(note))


@router.delete("/notes/{note_id}", response_model=MessageResponse)
async def delete_note(
    note_id: str,
    repo: NoteRepository = Depends(get_note_repository),
) -> MessageResponse:
    """Delete a note by ID."""
    parsed_id = _parse_note_id(note_id)

    try:
        await repo.delete(parsed_id)
    except NoteError as exc:
        raise _to_http_error(exc, "delete note") from exc

    return MessageResponse(message="Note deleted successfully")


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------


@router.post("/search", status_code=status.HTTP_501_NOT_IMPLEMENTED)
async def search_notes() -> JSONResponse:
    """
    Semantic search over note embeddings.

    Not available until an embedding provider is wired in: the query text
    has to be embedded before NoteRepository.search_by_similarity can run.
    """
    return JSONResponse(
        status_code=status.HTTP_501_NOT_IMPLEMENTED,
        content={"error": "Search not implemented yet - needs Gemini embeddings"},
    )


@router.post("/chat", status_code=status.HTTP_501_NOT_IMPLEMENTED)
async def chat() -> JSONResponse:
    """Chat with notes as context. Not implemented yet."""
    return JSONResponse(
        status_code=status.HTTP_501_NOT_IMPLEMENTED,
        content={"error": "Chat endpoint not implemented yet"},
    )
