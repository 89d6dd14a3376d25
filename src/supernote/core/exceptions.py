"""
Domain Exceptions

Typed outcomes raised by the persistence gateway. The HTTP layer is the only
place that maps them to status codes.
"""

from __future__ import annotations

from typing import Any


class NoteError(Exception):
    """Base exception for all note persistence errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NoteValidationError(NoteError):
    """Raised when gateway input is rejected before reaching the store."""


class NoteNotFoundError(NoteError):
    """Raised when no note matches the requested identifier."""


class NoteOperationCancelledError(NoteError):
    """Raised when an operation is aborted because its deadline expired."""


class NoteStoreError(NoteError):
    """Raised when the database fails or rejects an operation."""


class NoteWriteError(NoteStoreError):
    """Raised when a note cannot be serialized or inserted."""


class NoteReadError(NoteStoreError):
    """Raised when notes cannot be fetched or deserialized."""


class NoteDeleteError(NoteStoreError):
    """Raised when a delete fails for a reason other than a missing row."""


__all__ = [
    "NoteError",
    "NoteValidationError",
    "NoteNotFoundError",
    "NoteOperationCancelledError",
    "NoteStoreError",
    "NoteWriteError",
    "NoteReadError",
    "NoteDeleteError",
]
