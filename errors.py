"""
Errors raised by the content layer.

Each carries the HTTP status the API answers with; the message is short and
safe to show to the dashboard user.
"""
from typing import Iterable, List, Optional


class ContentError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ContentError):
    """Missing or invalid input fields."""
    status_code = 400

    def __init__(self, message: str, fields: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.fields: List[str] = list(fields or [])

    @classmethod
    def missing(cls, fields: List[str]) -> "ValidationError":
        return cls(f"{', '.join(fields)} required", fields)


class NotFoundError(ContentError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class StorageError(ContentError):
    """Persisting a collection or an uploaded file failed."""
    status_code = 500
