"""Tests for the error hierarchy and classification."""

import pytest

from flashcard_stream.errors import (
    AuthenticationRequiredError,
    ErrorClass,
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
    classify_http_error,
    extract_error_message,
    is_retryable,
)


class TestHierarchy:
    """Tests for the error class hierarchy."""

    @pytest.mark.parametrize(
        "error",
        [
            ValidationError("Prompt is required", field="prompt"),
            AuthenticationRequiredError(),
            NotConfiguredError(),
        ],
    )
    def test_preconditions(self, error: FlashcardStreamError) -> None:
        """Test request-level rejections are precondition errors."""
        assert isinstance(error, PreconditionError)
        assert not isinstance(error, StreamError)

    @pytest.mark.parametrize(
        "error",
        [
            NetworkError("Connection refused"),
            UpstreamError("boom"),
            MalformedFrameError("bad frame", decoder="event_stream"),
            StreamTimeoutError("No data received for 30s", timeout=30.0),
            ProtocolViolationError(expected=1, actual=3),
            GenerationCancelledError(),
        ],
    )
    def test_stream_errors(self, error: FlashcardStreamError) -> None:
        """Test in-flight faults are stream errors."""
        assert isinstance(error, StreamError)
        assert isinstance(error, FlashcardStreamError)

    def test_default_messages(self) -> None:
        """Test user-facing default messages."""
        assert AuthenticationRequiredError().message == "Please sign in to use AI features"
        assert NotConfiguredError().message == "Generation endpoint URL not configured"

    def test_validation_details(self) -> None:
        """Test validation errors carry the offending field."""
        error = ValidationError("too long", field="prompt", limit=250, actual=300)

        assert error.field == "prompt"
        assert error.limit == 250
        assert error.actual == 300

    def test_protocol_violation(self) -> None:
        """Test the expected and claimed indices are kept."""
        error = ProtocolViolationError(expected=1, actual=3)

        assert (error.expected, error.actual) == (1, 3)

    def test_hint(self) -> None:
        """Test adding a hint to the context."""
        error = NotConfiguredError().with_hint("Set SUPABASE_URL")

        assert error.context.hint == "Set SUPABASE_URL"
        assert "(hint: Set SUPABASE_URL)" in str(error.context)


class TestUpstreamError:
    """Tests for UpstreamError factories."""

    def test_from_response(self) -> None:
        """Test building an error from a failed response."""
        error = UpstreamError.from_response(503, {"error": "Service unavailable"})

        assert error.message == "Service unavailable (HTTP 503)"
        assert error.error_class is ErrorClass.OVERLOADED
        assert error.retryable is True
        assert error.raw_error == {"error": "Service unavailable"}

    def test_from_response_without_body(self) -> None:
        """Test the generic message."""
        error = UpstreamError.from_response(400)

        assert error.message == "Failed to generate flashcards (HTTP 400)"
        assert error.retryable is False

    def test_from_error_frame(self) -> None:
        """Test building an error from an in-stream error frame."""
        error = UpstreamError.from_error_frame({"error": {"message": "quota exceeded"}})

        assert error.message == "quota exceeded"
        assert error.status_code is None
        assert error.error_class is ErrorClass.STREAM_ERROR


class TestClassification:
    """Tests for error classification helpers."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (400, ErrorClass.INVALID_REQUEST),
            (401, ErrorClass.AUTHENTICATION),
            (403, ErrorClass.PERMISSION_DENIED),
            (404, ErrorClass.NOT_FOUND),
            (418, ErrorClass.INVALID_REQUEST),
            (429, ErrorClass.RATE_LIMITED),
            (500, ErrorClass.SERVER_ERROR),
            (503, ErrorClass.OVERLOADED),
            (504, ErrorClass.TIMEOUT),
            (599, ErrorClass.SERVER_ERROR),
            (302, ErrorClass.OTHER),
        ],
    )
    def test_classify_http_error(self, status: int, expected: ErrorClass) -> None:
        """Test status code classification."""
        assert classify_http_error(status) is expected

    def test_retryable(self) -> None:
        """Test the advisory retry verdict."""
        assert is_retryable(ErrorClass.RATE_LIMITED) is True
        assert is_retryable(ErrorClass.AUTHENTICATION) is False

    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ({"error": "Daily limit reached"}, "Daily limit reached"),
            ({"error": {"message": "Invalid JWT"}}, "Invalid JWT"),
            ({"message": "Not found"}, "Not found"),
            ({"error": 42}, None),
            ({}, None),
            (None, None),
        ],
    )
    def test_extract_error_message(self, body: dict | None, expected: str | None) -> None:
        """Test error message extraction from the supported body shapes."""
        assert extract_error_message(body) == expected
