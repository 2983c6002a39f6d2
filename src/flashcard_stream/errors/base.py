"""
Base error classes for flashcard-stream.

Provides a layered error hierarchy:
- FlashcardStreamError: Base class for all library errors
- PreconditionError: Fail-fast errors raised before any network call
  (ValidationError, AuthenticationRequiredError, NotConfiguredError)
- StreamError: Terminal errors of a running session
  (NetworkError, UpstreamError, MalformedFrameError, StreamTimeoutError,
  ProtocolViolationError, GenerationCancelledError)

Stream errors never retract records that were already delivered to a sink.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flashcard_stream.errors.classification import ErrorClass


@dataclass
class ErrorContext:
    """Structured error context for diagnostics."""

    field_path: str | None = None
    """Path to the problematic field (e.g., 'prompt')"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'validation', 'transport', 'pipeline')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.field_path:
            parts.append(f"at '{self.field_path}'")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class FlashcardStreamError(Exception):
    """Base class for all flashcard-stream errors.

    Attributes:
        message: Human-readable error message
        context: Structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> FlashcardStreamError:
        """Add a hint to this error."""
        self.context.hint = hint
        return self


class PreconditionError(FlashcardStreamError):
    """A request precondition failed; no network activity took place."""


class ValidationError(PreconditionError):
    """Invalid generation request (prompt too long, bad card count, ...)."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        field: str | None = None,
        limit: Any = None,
        actual: Any = None,
    ) -> None:
        ctx = context or ErrorContext(source="validation")
        if field:
            ctx.field_path = field
        if limit is not None:
            ctx.details["limit"] = limit
        if actual is not None:
            ctx.details["actual"] = actual
        super().__init__(message, ctx)
        self.field = field
        self.limit = limit
        self.actual = actual


class AuthenticationRequiredError(PreconditionError):
    """No authenticated identity or session token is available."""

    def __init__(self, message: str = "Please sign in to use AI features") -> None:
        super().__init__(message, ErrorContext(source="auth"))


class NotConfiguredError(PreconditionError):
    """The generation endpoint is not configured."""

    def __init__(self, message: str = "Generation endpoint URL not configured") -> None:
        super().__init__(
            message,
            ErrorContext(
                source="config",
                hint="set FLASHCARD_ENDPOINT_URL or SUPABASE_URL",
            ),
        )


class StreamError(FlashcardStreamError):
    """Terminal failure of a running generation session."""


class NetworkError(StreamError):
    """Transport-level failure (connection refused, reset, TLS, ...)."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = ErrorContext(source="transport")
        if url:
            ctx.details["url"] = url
        super().__init__(message, ctx)
        self.url = url
        self.__cause__ = cause


class UpstreamError(StreamError):
    """Non-success response or explicit error frame from the backend.

    Attributes:
        status_code: HTTP status code, None for in-stream error frames
        error_class: Classification of the failure
        retryable: Advisory flag for caller retry policy
        raw_error: Parsed error body or frame payload
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_class: ErrorClass | None = None,
        retryable: bool = False,
        raw_error: dict[str, Any] | None = None,
    ) -> None:
        ctx = ErrorContext(source="upstream")
        if status_code is not None:
            ctx.details["status_code"] = status_code
        if error_class is not None:
            ctx.details["error_class"] = error_class.value
        super().__init__(message, ctx)
        self.status_code = status_code
        self.error_class = error_class
        self.retryable = retryable
        self.raw_error = raw_error or {}

    @classmethod
    def from_response(
        cls,
        status_code: int,
        body: dict[str, Any] | None = None,
    ) -> UpstreamError:
        """Create an UpstreamError from a non-success HTTP response.

        Args:
            status_code: HTTP status code
            body: Response body (parsed JSON), if any

        Returns:
            UpstreamError with classification
        """
        from flashcard_stream.errors.classification import (
            classify_http_error,
            extract_error_message,
            is_retryable,
        )

        error_class = classify_http_error(status_code)
        message = extract_error_message(body) or "Failed to generate flashcards"
        return cls(
            f"{message} (HTTP {status_code})",
            status_code=status_code,
            error_class=error_class,
            retryable=is_retryable(error_class),
            raw_error=body,
        )

    @classmethod
    def from_error_frame(cls, payload: dict[str, Any]) -> UpstreamError:
        """Create an UpstreamError from an in-stream `error` event payload."""
        from flashcard_stream.errors.classification import (
            ErrorClass,
            extract_error_message,
        )

        message = extract_error_message(payload) or "Failed to generate flashcards"
        return cls(message, error_class=ErrorClass.STREAM_ERROR, raw_error=payload)


class MalformedFrameError(StreamError):
    """Structurally invalid framing that cannot be resynchronized."""

    def __init__(
        self,
        message: str,
        *,
        decoder: str | None = None,
        line: str | None = None,
    ) -> None:
        ctx = ErrorContext(source="pipeline")
        if decoder:
            ctx.details["decoder"] = decoder
        if line is not None:
            ctx.details["line"] = line[:200]
        super().__init__(message, ctx)
        self.decoder = decoder
        self.line = line


class StreamTimeoutError(StreamError):
    """No chunk arrived within the inactivity bound, or the deadline passed."""

    def __init__(self, message: str, *, timeout: float | None = None) -> None:
        ctx = ErrorContext(source="stream")
        if timeout is not None:
            ctx.details["timeout"] = timeout
        super().__init__(message, ctx)
        self.timeout = timeout


class ProtocolViolationError(StreamError):
    """A card payload's index does not match the expected sequence number."""

    def __init__(self, *, expected: int, actual: int) -> None:
        super().__init__(
            f"Card index {actual} does not match expected sequence number {expected}",
            ErrorContext(
                source="pipeline",
                details={"expected": expected, "actual": actual},
            ),
        )
        self.expected = expected
        self.actual = actual


class GenerationCancelledError(StreamError):
    """The caller cancelled the session."""

    def __init__(self, message: str = "Generation cancelled", *, reason: str | None = None) -> None:
        ctx = ErrorContext(source="stream")
        if reason:
            ctx.details["reason"] = reason
        super().__init__(message, ctx)
        self.reason = reason
