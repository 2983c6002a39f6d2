"""
Error classification for backend failures.

Maps HTTP status codes and error bodies to a small set of error classes.
The `retryable` verdict is advisory only; this package never retries.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorClass(str, Enum):
    """Classification of an upstream failure."""

    INVALID_REQUEST = "invalid_request"
    """Malformed request or missing fields (prompt, count)."""

    AUTHENTICATION = "authentication"
    """Missing or invalid session token."""

    PERMISSION_DENIED = "permission_denied"
    """Authenticated but not allowed."""

    NOT_FOUND = "not_found"
    """Endpoint not deployed."""

    RATE_LIMITED = "rate_limited"
    """Per-user daily request limit reached."""

    TIMEOUT = "timeout"
    """Upstream deadline exceeded."""

    SERVER_ERROR = "server_error"
    """Backend failure (5xx), e.g. model provider key missing."""

    OVERLOADED = "overloaded"
    """Service temporarily unavailable."""

    STREAM_ERROR = "stream_error"
    """Explicit error frame emitted mid-stream."""

    OTHER = "other"
    """Anything else."""


_RETRYABLE_CLASSES: set[ErrorClass] = {
    ErrorClass.RATE_LIMITED,
    ErrorClass.TIMEOUT,
    ErrorClass.SERVER_ERROR,
    ErrorClass.OVERLOADED,
}

_DEFAULT_STATUS_MAPPING: dict[int, ErrorClass] = {
    400: ErrorClass.INVALID_REQUEST,
    401: ErrorClass.AUTHENTICATION,
    403: ErrorClass.PERMISSION_DENIED,
    404: ErrorClass.NOT_FOUND,
    408: ErrorClass.TIMEOUT,
    422: ErrorClass.INVALID_REQUEST,
    429: ErrorClass.RATE_LIMITED,
    500: ErrorClass.SERVER_ERROR,
    502: ErrorClass.SERVER_ERROR,
    503: ErrorClass.OVERLOADED,
    504: ErrorClass.TIMEOUT,
}


def classify_http_error(status_code: int) -> ErrorClass:
    """Classify an HTTP error status into an error class.

    Args:
        status_code: HTTP status code

    Returns:
        ErrorClass representing the error type
    """
    if status_code in _DEFAULT_STATUS_MAPPING:
        return _DEFAULT_STATUS_MAPPING[status_code]

    if 400 <= status_code < 500:
        return ErrorClass.INVALID_REQUEST
    if 500 <= status_code < 600:
        return ErrorClass.SERVER_ERROR

    return ErrorClass.OTHER


def is_retryable(error_class: ErrorClass) -> bool:
    """Check if an error class is typically retryable by the caller."""
    return error_class in _RETRYABLE_CLASSES


def extract_error_message(body: dict[str, Any] | None) -> str | None:
    """Extract an error message from a response body or error frame.

    Supports:
    - Edge function style: {"error": "..."}
    - OpenAI style: {"error": {"message": "..."}}
    - Simple: {"message": "..."}

    Args:
        body: Parsed JSON body

    Returns:
        Error message if found, None otherwise
    """
    if not body:
        return None

    if "error" in body:
        error = body["error"]
        if isinstance(error, str):
            return error
        if isinstance(error, dict):
            msg = error.get("message")
            if isinstance(msg, str):
                return msg

    if "message" in body:
        msg = body["message"]
        if isinstance(msg, str):
            return msg

    return None
