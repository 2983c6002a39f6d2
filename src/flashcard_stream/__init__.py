"""
flashcard-stream: incremental extraction of AI-generated flashcards.

Streams a generation response, decodes it frame by frame and hands every
question/answer card to the caller the moment it is complete.
"""

from __future__ import annotations

from flashcard_stream._features import HAS_HTTP2, HAS_KEYRING, require_extra
from flashcard_stream.client import (
    CancelHandle,
    CancelReason,
    CancelToken,
    FlashcardClient,
    FlashcardClientBuilder,
    GenerationSession,
    SessionState,
    SessionStats,
    create_cancel_pair,
)
from flashcard_stream.config import ClientConfig, WireFormat
from flashcard_stream.errors import (
    AuthenticationRequiredError,
    FlashcardStreamError,
    GenerationCancelledError,
    MalformedFrameError,
    NetworkError,
    NotConfiguredError,
    ProtocolViolationError,
    StreamTimeoutError,
    UpstreamError,
    ValidationError,
)
from flashcard_stream.transport import Identity, StaticTokenProvider
from flashcard_stream.types import Flashcard, GenerationRequest, GenerationResult

__version__ = "0.1.0"

__all__ = [
    # Feature flags
    "HAS_HTTP2",
    "HAS_KEYRING",
    # Errors
    "AuthenticationRequiredError",
    # Client
    "CancelHandle",
    "CancelReason",
    "CancelToken",
    # Config
    "ClientConfig",
    # Types
    "Flashcard",
    "FlashcardClient",
    "FlashcardClientBuilder",
    "FlashcardStreamError",
    "GenerationCancelledError",
    "GenerationRequest",
    "GenerationResult",
    "GenerationSession",
    "Identity",
    "MalformedFrameError",
    "NetworkError",
    "NotConfiguredError",
    "ProtocolViolationError",
    "SessionState",
    "SessionStats",
    "StaticTokenProvider",
    "StreamTimeoutError",
    "UpstreamError",
    "ValidationError",
    "WireFormat",
    # Version
    "__version__",
    "create_cancel_pair",
    "require_extra",
]
