"""
Type definitions for flashcard-stream.
"""

from flashcard_stream.types.cards import (
    MAX_FIELD_LENGTH,
    MAX_TITLE_LENGTH,
    Flashcard,
    GenerationRequest,
    GenerationResult,
    SinkFailure,
)
from flashcard_stream.types.frames import EventFrame, Frame, TextFragment

__all__ = [
    "MAX_FIELD_LENGTH",
    "MAX_TITLE_LENGTH",
    "EventFrame",
    "Flashcard",
    "Frame",
    "GenerationRequest",
    "GenerationResult",
    "SinkFailure",
    "TextFragment",
]
