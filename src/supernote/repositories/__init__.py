"""Repositories package."""

from supernote.repositories.notes import NoteRepository

__all__ = ["NoteRepository"]
