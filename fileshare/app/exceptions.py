"""Backend-only exception types.

These are used to keep service code HTTP-agnostic while still allowing the
global exception handlers in ``fileshare/app/main.py`` to map errors to
appropriate HTTP responses.
"""

from __future__ import annotations


class FileshareError(Exception):
    """Base class for caller-visible file service failures."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(FileshareError):
    """Raised for a malformed path, file name, upload id or chunk index."""

    status_code = 400


class NotFoundError(FileshareError):
    """Raised when a target is missing or deliberately hidden."""

    status_code = 404


class ConflictError(FileshareError):
    """Raised when an upload destination already exists."""

    status_code = 409


class StorageError(FileshareError):
    """Raised for disk faults after any partial output has been rolled back."""

    status_code = 500
