"""
Pipeline layer - incremental decoding and extraction of flashcards.

Chunks flow through:
- ChunkSource: ordered, cancellable chunk delivery
- FrameDecoder: chunks -> frames (flat text, event stream, chat deltas)
- RecordExtractor: frames -> completed cards
- Emitter: cards -> sink, in strict sequence order
"""

from flashcard_stream.pipeline.base import (
    ExtractedCard,
    FrameDecoder,
    Pipeline,
    RecordExtractor,
)
from flashcard_stream.pipeline.decode import (
    ChatCompletionDecoder,
    EventStreamDecoder,
    FlatTextDecoder,
    LineBuffer,
    create_decoder,
)
from flashcard_stream.pipeline.emit import Emitter, RecordSink
from flashcard_stream.pipeline.extract import (
    CardTextExtractor,
    EventRecordExtractor,
    FragmentBuffer,
    create_extractor,
)
from flashcard_stream.pipeline.source import ChunkSource

__all__ = [
    "CardTextExtractor",
    "ChatCompletionDecoder",
    "ChunkSource",
    "Emitter",
    "EventRecordExtractor",
    "EventStreamDecoder",
    "ExtractedCard",
    "FlatTextDecoder",
    "FragmentBuffer",
    "FrameDecoder",
    "LineBuffer",
    "Pipeline",
    "RecordExtractor",
    "RecordSink",
    "create_decoder",
    "create_extractor",
]
