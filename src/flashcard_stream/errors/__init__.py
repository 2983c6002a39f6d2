"""Error hierarchy for flashcard-stream."""

from flashcard_stream.errors.base import (
    AuthenticationRequiredError,
    ErrorContext,
    FlashcardStreamError,
    GenerationCancelledError,
    MalformedFrameError,
    NetworkError,
    NotConfiguredError,
    PreconditionError,
    ProtocolViolationError,
    StreamError,
    StreamTimeoutError,
    UpstreamError,
    ValidationError,
)
from flashcard_stream.errors.classification import (
    ErrorClass,
    classify_http_error,
    extract_error_message,
    is_retryable,
)

__all__ = [
    "AuthenticationRequiredError",
    "ErrorClass",
    "ErrorContext",
    "FlashcardStreamError",
    "GenerationCancelledError",
    "MalformedFrameError",
    "NetworkError",
    "NotConfiguredError",
    "PreconditionError",
    "ProtocolViolationError",
    "StreamError",
    "StreamTimeoutError",
    "UpstreamError",
    "ValidationError",
    "classify_http_error",
    "extract_error_message",
    "is_retryable",
]
