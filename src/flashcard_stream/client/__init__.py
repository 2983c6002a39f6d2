"""
Client layer - generation sessions and the FlashcardClient facade.
"""

from flashcard_stream.client.builder import FlashcardClientBuilder
from flashcard_stream.client.cancel import (
    CancelHandle,
    CancelReason,
    CancelToken,
    create_cancel_pair,
)
from flashcard_stream.client.core import FlashcardClient
from flashcard_stream.client.response import SessionStats
from flashcard_stream.client.session import GenerationSession, SessionState

__all__ = [
    "CancelHandle",
    "CancelReason",
    "CancelToken",
    "FlashcardClient",
    "FlashcardClientBuilder",
    "GenerationSession",
    "SessionState",
    "SessionStats",
    "create_cancel_pair",
]
