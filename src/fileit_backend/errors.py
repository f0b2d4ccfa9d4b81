"""
Exception types raised by the FileIt backend.

Every failure surfaces as a ``FileItError`` subclass carrying a readable
message; the underlying library exception is always chained as ``__cause__``
so the original error is never lost. The API layer maps each subclass to an
HTTP status code.
"""

from __future__ import annotations


class FileItError(Exception):
    """Base class for all FileIt failures."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(FileItError):
    """A required setting is missing or unusable (e.g. a malformed private key)."""


class StorageError(FileItError):
    """The object store rejected or failed an operation."""

    status_code = 502


class BookNotFoundError(FileItError):
    """The requested book or object does not exist."""

    status_code = 404


class ConversionError(FileItError):
    """A document could not be converted (XML to JSON, Word to PDF, PDF to images)."""

    status_code = 422


class AuthenticationError(FileItError):
    """Credentials or session token were rejected."""

    status_code = 401


class InvalidRequestError(FileItError):
    """The request itself is unusable (empty body, unsupported upload type)."""

    status_code = 400


class RateLimitError(FileItError):
    """Too many attempts from one identifier inside the current window."""

    status_code = 429
