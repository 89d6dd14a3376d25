"""FastAPI dependencies shared by the routers."""

from fastapi import Request

from supernote.repositories.notes import NoteRepository


def get_note_repository(request: Request) -> NoteRepository:
    """Return the repository published on app.state by the lifespan handler."""
    return request.app.state.note_repository
