"""Error types raised by the upload and listing flows.

Each error carries the HTTP status it maps to, so `main.py` can render
every failure through a single exception handler.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class UploadError(Exception):
    """Base error for image storage operations.

    Attributes:
        message: Human-readable message returned to the client.
        detail: Optional underlying error text (e.g. the database error).
        status_code: HTTP status code to return.
    """

    status_code: int = 500

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message if detail is None else f"{message}: {detail}")

    def to_response(self) -> Dict[str, Any]:
        """Return the JSON body for this error."""
        return {"message": self.message, "error": self.detail or self.message}


class ValidationError(UploadError):
    """Raised for bad input: missing file, wrong content type, oversized payload."""

    status_code = 400

    def to_response(self) -> Dict[str, Any]:
        return {"message": self.message}


class StorageError(UploadError):
    """Raised when writing a file to the blob store fails."""

    status_code = 500


class PersistenceError(UploadError):
    """Raised when the database is unavailable or a statement fails."""

    status_code = 500
