"""
Note Schemas

Pydantic models for Note API request/response validation.
Separates concerns: NoteCreate (input), NoteRead (output), plus the response
envelopes of the notes endpoints.
"""

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, JsonValue


class NoteCreate(BaseModel):
    """Request schema for POST /api/notes."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Note title (1-500 chars)",
    )
    content: str = Field(
        ...,
        min_length=1,
        description="Note content",
    )
    chunk_content: str | None = Field(
        default=None,
        description="Text segment used for embedding, if different from content",
    )
    user_id: UUID | None = Field(default=None, description="Optional owner id")
    metadata: dict[str, JsonValue] = Field(
        default_factory=dict,
        description="Free-form JSON object stored alongside the note",
    )


class NoteRead(BaseModel):
    """
    Full Note representation returned to clients.

    The embedding vector is never exposed.
    """

    id: UUID
    user_id: UUID | None = None
    title: str
    content: str
    chunk_content: str | None = None
    # ORM attribute is note_metadata ("metadata" is reserved on declarative models)
    metadata: dict[str, JsonValue] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("note_metadata", "metadata"),
    )
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)  # Enables ORM model conversion


class NoteEnvelope(BaseModel):
    """Single-note response body: ``{"note": {...}}``."""

    note: NoteRead


class NoteListResponse(BaseModel):
    """Paginated list response body."""

    notes: list[NoteRead]
    limit: int
    offset: int
    count: int


class MessageResponse(BaseModel):
    """Plain confirmation message."""

    message: str

