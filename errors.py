"""
API error types.

Every error raised by the application is an ``ApiError`` (a FastAPI
``HTTPException``) carrying a status code, a message and an optional list of
detail entries. ``main.py`` renders them as the error envelope.
"""

from typing import List, Optional

from fastapi import HTTPException


class ApiError(HTTPException):
    default_status = 500
    default_message = "An error occurred"

    def __init__(self, message: Optional[str] = None, errors: Optional[List] = None, status_code: Optional[int] = None):
        super().__init__(status_code=status_code or self.default_status, detail=message or self.default_message)
        self.errors = errors or []

    @property
    def message(self) -> str:
        return self.detail


class BadRequest(ApiError):
    default_status = 400
    default_message = "Bad request"


class Unauthorized(ApiError):
    default_status = 401
    default_message = "Unauthorized request"


class TokenError(Unauthorized):
    """Token failed verification. ``reason`` is "missing", "invalid" or "stale"."""

    messages = {
        "missing": "Token is required",
        "invalid": "Invalid or expired token",
        "stale": "Refresh token is expired or used",
    }

    def __init__(self, reason: str = "invalid", message: Optional[str] = None):
        super().__init__(message or self.messages.get(reason, self.default_message))
        self.reason = reason


class Forbidden(ApiError):
    default_status = 403
    default_message = "You don't have permission to perform this action"


class NotFound(ApiError):
    default_status = 404
    default_message = "Resource not found"


class Conflict(ApiError):
    default_status = 409
    default_message = "Resource already exists"


class Internal(ApiError):
    default_status = 500
    default_message = "Internal Server Error"
