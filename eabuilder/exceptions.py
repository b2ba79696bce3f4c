"""
EA Builder Exceptions

Error taxonomy shared by services and the HTTP layer.
"""

from typing import Any, Dict, Optional


class EABuilderError(Exception):
    """Base error. Carries the HTTP status the API renders it with."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(EABuilderError):
    """Malformed or missing required field."""

    status_code = 400

    def __init__(self, field: str, message: str, details: Optional[Any] = None):
        super().__init__(message, details if details is not None else {"field": field})
        self.field = field


class NotFoundError(EABuilderError):
    """Referenced id does not exist or fails a state precondition."""

    status_code = 404


class StoreError(EABuilderError):
    """Underlying persistence failure."""

    status_code = 500


__all__ = [
    "EABuilderError",
    "ValidationError",
    "NotFoundError",
    "StoreError",
]
