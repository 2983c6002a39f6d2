"""
Base abstractions for the pipeline layer.

Decoders and extractors are synchronous and incremental: the session feeds
one chunk, drains every card it completes, and only then awaits the next
chunk. Both stages are generators so that cards completed before a fault
inside the same chunk are still delivered in order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from flashcard_stream.config import WireFormat
    from flashcard_stream.types.cards import Flashcard
    from flashcard_stream.types.frames import Frame

ExtractedCard = tuple["Flashcard", "int | None"]
"""A completed card and the index claimed by the wire, if any."""


class FrameDecoder(ABC):
    """Turns raw chunks into frames.

    Owns the decoder state (partial line, partial multi-byte sequence,
    pending event type); never shared between sessions.
    """

    @abstractmethod
    def feed(self, chunk: bytes | str) -> Iterator[Frame]:
        """Consume one chunk and yield every frame it completes.

        Args:
            chunk: Raw chunk; may split any token or character

        Yields:
            Complete frames in wire order
        """
        ...

    @abstractmethod
    def finish(self) -> Iterator[Frame]:
        """Signal end of stream and yield whatever the tail still holds."""
        ...

    async def decode(self, byte_stream: AsyncIterator[bytes]) -> AsyncIterator[Frame]:
        """Decode a whole async byte stream.

        Args:
            byte_stream: Async iterator of raw chunks

        Yields:
            Frames in wire order
        """
        async for chunk in byte_stream:
            for frame in self.feed(chunk):
                yield frame
        for frame in self.finish():
            yield frame


class RecordExtractor(ABC):
    """Matches frames against the card grammar.

    Owns the extractor state (text buffer, title flag, count of cards
    produced) for the lifetime of one session.
    """

    @abstractmethod
    def process(self, frame: Frame) -> Iterator[ExtractedCard]:
        """Consume one frame and yield every card it completes."""
        ...

    def finish(self) -> None:  # noqa: B027
        """Signal end of stream; incomplete tails are discarded."""

    @property
    @abstractmethod
    def title(self) -> str | None:
        """Captured set title, if any."""
        ...

    @property
    @abstractmethod
    def cards_produced(self) -> int:
        """Number of cards completed so far."""
        ...


class Pipeline:
    """Decoder followed by extractor, for one session.

    Example:
        >>> pipeline = Pipeline.for_format(WireFormat.TEXT)
        >>> for card, claimed_index in pipeline.feed(chunk):
        ...     await emitter.emit(card, claimed_index=claimed_index)
    """

    def __init__(self, decoder: FrameDecoder, extractor: RecordExtractor) -> None:
        self._decoder = decoder
        self._extractor = extractor

    @property
    def decoder(self) -> FrameDecoder:
        return self._decoder

    @property
    def extractor(self) -> RecordExtractor:
        return self._extractor

    @property
    def title(self) -> str | None:
        return self._extractor.title

    def feed(self, chunk: bytes | str) -> Iterator[ExtractedCard]:
        """Feed one chunk; yields completed cards lazily, in order."""
        for frame in self._decoder.feed(chunk):
            yield from self._extractor.process(frame)

    def finish(self) -> Iterator[ExtractedCard]:
        """Flush the decoder tail, then close the extractor."""
        for frame in self._decoder.finish():
            yield from self._extractor.process(frame)
        self._extractor.finish()

    @classmethod
    def for_format(
        cls,
        wire_format: WireFormat,
        *,
        capture_title: bool = True,
        max_line_bytes: int | None = None,
    ) -> Pipeline:
        """Create the decoder/extractor pair for a wire format.

        Args:
            wire_format: Wire encoding selected for the session
            capture_title: Whether a title should be captured
            max_line_bytes: Upper bound for one buffered line (line framings)

        Returns:
            Configured Pipeline
        """
        from flashcard_stream.pipeline.decode import create_decoder
        from flashcard_stream.pipeline.extract import create_extractor

        return cls(
            decoder=create_decoder(wire_format, max_line_bytes=max_line_bytes),
            extractor=create_extractor(wire_format, capture_title=capture_title),
        )
