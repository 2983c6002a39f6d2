"""
Record extractors.

Implements:
- CardTextExtractor: incremental tokenizer for the flat delimiter-marked text
- EventRecordExtractor: maps decoded title/card/error/done events to cards

Flat text grammar (one optional title line, then zero or more blocks):
```
TITLE: <text>
CARD_START
Q: <question>
A: <answer>
CARD_END
```
"""

from __future__ import annotations

from bisect import bisect_right
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PayloadValidationError

from flashcard_stream.config import WireFormat
from flashcard_stream.errors import MalformedFrameError, UpstreamError
from flashcard_stream.pipeline.base import ExtractedCard, RecordExtractor
from flashcard_stream.telemetry import get_logger
from flashcard_stream.types.cards import MAX_TITLE_LENGTH, Flashcard, clamp_text
from flashcard_stream.types.frames import (
    CARD_EVENT,
    DONE_EVENT,
    TITLE_EVENT,
    CardPayload,
    DonePayload,
    EventFrame,
    TextFragment,
    TitlePayload,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from flashcard_stream.types.frames import Frame

logger = get_logger(__name__)

TITLE_MARKER = "TITLE:"
CARD_START = "CARD_START"
QUESTION_MARKER = "Q:"
ANSWER_MARKER = "A:"
CARD_END = "CARD_END"

_PayloadT = TypeVar("_PayloadT", bound=BaseModel)


class FragmentBuffer:
    """Unconsumed text kept as the fragments it arrived in.

    Positions are absolute offsets into the whole stream, so they stay
    valid when a prefix is consumed. Appending never copies earlier
    fragments; text is joined only for the region a caller asks for.
    """

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._starts: list[int] = []
        self._head = 0
        self._end = 0

    @property
    def head(self) -> int:
        """Offset of the first unconsumed character."""
        return self._head

    @property
    def end(self) -> int:
        return self._end

    def __len__(self) -> int:
        return self._end - self._head

    def __str__(self) -> str:
        return self.slice(self._head)

    def append(self, text: str) -> None:
        if not text:
            return
        self._starts.append(self._end)
        self._parts.append(text)
        self._end += len(text)

    def slice(self, start: int, stop: int | None = None) -> str:
        """Text between two absolute offsets, clipped to the unconsumed region."""
        start = max(start, self._head)
        stop = self._end if stop is None else min(stop, self._end)
        if start >= stop:
            return ""
        i = bisect_right(self._starts, start) - 1
        pieces = []
        while i < len(self._parts) and self._starts[i] < stop:
            offset = self._starts[i]
            pieces.append(self._parts[i][max(start - offset, 0) : stop - offset])
            i += 1
        return "".join(pieces)

    def find(self, sub: str, start: int, stop: int | None = None) -> int:
        """Absolute offset of `sub` at or after `start`, or -1."""
        start = max(start, self._head)
        at = self.slice(start, stop).find(sub)
        return -1 if at == -1 else start + at

    def resume_from(self, marker: str, cursor: int) -> int:
        """Next search position after `marker` was not found at or after `cursor`.

        A partial marker may sit at the very end, so the last
        len(marker) - 1 characters are searched again.
        """
        return max(cursor, self._end - len(marker) + 1)

    def consume(self, position: int) -> None:
        """Drop everything before `position`."""
        self._head = max(self._head, min(position, self._end))
        keep = bisect_right(self._starts, self._head) - 1
        if keep > 0:
            del self._parts[:keep]
            del self._starts[:keep]


class _Stage(str, Enum):
    START = "start"
    QUESTION = "question"
    ANSWER = "answer"
    END = "end"


class CardTextExtractor(RecordExtractor):
    """Cursor-based incremental tokenizer for flat card text.

    The buffer holds only the unconsumed input. It shrinks solely by
    removing a fully matched block (together with any text preceding it);
    partially received markers stay in place. Each search resumes from a
    cursor, so text already known not to contain the awaited marker is
    never scanned again while a block is still incomplete.
    """

    def __init__(self, *, capture_title: bool = True) -> None:
        self._text = FragmentBuffer()
        self._stage = _Stage.START
        self._cursor = 0
        self._field_start: int | None = None
        self._block_start: int | None = None
        self._question = ""
        self._answer = ""
        self._produced = 0

        self._title: str | None = None
        self._title_open = capture_title
        self._title_at: int | None = None
        self._title_cursor = 0

    @property
    def buffer(self) -> str:
        """Unconsumed input."""
        return str(self._text)

    @property
    def title(self) -> str | None:
        return self._title

    @property
    def cards_produced(self) -> int:
        return self._produced

    def process(self, frame: Frame) -> Iterator[ExtractedCard]:
        if isinstance(frame, EventFrame):
            if frame.is_error:
                raise UpstreamError.from_error_frame(frame.data)
            logger.warning("Ignoring event frame in text stream", event=frame.event)
            return

        self._text.append(frame.text)
        while True:
            if self._title_open:
                self._scan_title(at_end=False)
            card = self._advance()
            if card is None:
                return
            yield card, None

    def finish(self) -> None:
        if self._title_open:
            self._scan_title(at_end=True)
            self._title_open = False

        if self._stage is not _Stage.START:
            logger.warning(
                "Discarding incomplete card at end of stream",
                stage=self._stage.value,
                pending_chars=len(self._text),
            )
        elif self.buffer.strip():
            logger.debug("Ignoring trailing text", pending_chars=len(self._text))

    def _advance(self) -> Flashcard | None:
        """Move the block state machine as far as the buffer allows."""
        text = self._text

        if self._stage is _Stage.START:
            start = text.find(CARD_START, self._cursor)
            if start == -1:
                self._cursor = text.resume_from(CARD_START, self._cursor)
                return None
            self._block_start = start
            self._cursor = start + len(CARD_START)
            self._stage = _Stage.QUESTION

        if self._stage is _Stage.QUESTION:
            question = self._read_field(QUESTION_MARKER)
            if question is None:
                return None
            self._question = question
            self._stage = _Stage.ANSWER

        if self._stage is _Stage.ANSWER:
            answer = self._read_field(ANSWER_MARKER)
            if answer is None:
                return None
            self._answer = answer
            self._stage = _Stage.END

        end = text.find(CARD_END, self._cursor)
        if end == -1:
            self._cursor = text.resume_from(CARD_END, self._cursor)
            return None

        card = Flashcard.from_raw(self._question, self._answer)
        self._consume(end + len(CARD_END))
        self._produced += 1
        self._title_open = False
        return card

    def _read_field(self, marker: str) -> str | None:
        """Read the rest of the line following `marker`.

        Whitespace after the marker is skipped, including line breaks. The
        field is complete once its line terminator has arrived.
        """
        text = self._text
        if self._field_start is None:
            at = text.find(marker, self._cursor)
            if at == -1:
                self._cursor = text.resume_from(marker, self._cursor)
                return None
            self._field_start = at + len(marker)
            self._cursor = self._field_start

        start = self._field_start
        if start >= self._cursor:
            # Still inside the leading whitespace
            rest = text.slice(start)
            start += len(rest) - len(rest.lstrip())
            self._field_start = start
            if start == text.end:
                self._cursor = start
                return None

        line_end = text.find("\n", max(start, self._cursor))
        if line_end == -1:
            self._cursor = text.end
            return None

        self._field_start = None
        self._cursor = line_end + 1
        return text.slice(start, line_end)

    def _consume(self, position: int) -> None:
        """Drop a fully matched prefix and reset the block state."""
        self._text.consume(position)
        self._stage = _Stage.START
        self._cursor = position
        self._field_start = None
        self._block_start = None
        self._question = ""
        self._answer = ""

    def _scan_title(self, *, at_end: bool) -> None:
        """Capture the first TITLE: line if it precedes every record marker."""
        text = self._text
        if self._title_at is None:
            at = text.find(TITLE_MARKER, self._title_cursor)
            if at == -1:
                if at_end:
                    return
                self._title_cursor = text.resume_from(TITLE_MARKER, self._title_cursor)
                return
            before = (
                self._block_start
                if self._block_start is not None
                else text.find(CARD_START, text.head, at)
            )
            if before != -1 and before < at:
                self._title_open = False
                return
            self._title_at = at
            self._title_cursor = at + len(TITLE_MARKER)

        line_end = text.find("\n", self._title_cursor)
        marker = text.find(CARD_START, self._title_cursor)
        stops = [i for i in (line_end, marker) if i != -1]
        if stops:
            stop = min(stops)
        elif at_end:
            stop = text.end
        else:
            self._title_cursor = text.resume_from(CARD_START, self._title_cursor)
            return

        self._title_open = False
        title = clamp_text(text.slice(self._title_at + len(TITLE_MARKER), stop), MAX_TITLE_LENGTH)
        if title:
            self._title = title
            logger.debug("Captured title", title=title)


class EventRecordExtractor(RecordExtractor):
    """Maps decoded events to cards.

    - `title`: captured once, only before the first card
    - `card`: yields a card together with the index claimed by the payload
    - `error`: raises UpstreamError with the payload's message
    - `done`: checked against the number of cards produced
    """

    def __init__(self, *, capture_title: bool = True) -> None:
        self._produced = 0
        self._title: str | None = None
        self._title_open = capture_title
        self._total_cards: int | None = None

    @property
    def title(self) -> str | None:
        return self._title

    @property
    def cards_produced(self) -> int:
        return self._produced

    @property
    def total_cards(self) -> int | None:
        """Total announced by the `done` event, if one arrived."""
        return self._total_cards

    def process(self, frame: Frame) -> Iterator[ExtractedCard]:
        if isinstance(frame, TextFragment):
            logger.warning("Ignoring text fragment in event stream", size=len(frame.text))
            return

        if frame.is_error:
            raise UpstreamError.from_error_frame(frame.data)

        if frame.event == TITLE_EVENT:
            self._capture_title(frame)
        elif frame.event == CARD_EVENT:
            payload = self._parse(frame, CardPayload)
            self._produced += 1
            self._title_open = False
            yield Flashcard.from_raw(payload.question, payload.answer), payload.index
        elif frame.event == DONE_EVENT:
            self._record_done(frame)

    def _capture_title(self, frame: EventFrame) -> None:
        if not self._title_open:
            logger.debug("Ignoring title event", cards_produced=self._produced)
            return
        try:
            payload = TitlePayload.model_validate(frame.data)
        except PayloadValidationError:
            logger.warning("Ignoring malformed title event", payload=str(frame.data)[:120])
            return
        self._title_open = False
        title = clamp_text(payload.title, MAX_TITLE_LENGTH)
        self._title = title or None

    def _record_done(self, frame: EventFrame) -> None:
        try:
            payload = DonePayload.model_validate(frame.data)
        except PayloadValidationError:
            logger.warning("Ignoring malformed done event", payload=str(frame.data)[:120])
            return
        self._total_cards = payload.total_cards
        if payload.total_cards is not None and payload.total_cards != self._produced:
            logger.warning(
                "Backend card total differs from cards received",
                announced=payload.total_cards,
                received=self._produced,
            )

    @staticmethod
    def _parse(frame: EventFrame, model: type[_PayloadT]) -> _PayloadT:
        try:
            return model.model_validate(frame.data)
        except PayloadValidationError as e:
            raise MalformedFrameError(
                f"Invalid '{frame.event}' payload: {e.error_count()} validation error(s)",
                decoder="event_stream",
                line=str(frame.data),
            ) from e


def create_extractor(wire_format: WireFormat, *, capture_title: bool = True) -> RecordExtractor:
    """Create the extractor for a wire format.

    Args:
        wire_format: Selected wire encoding
        capture_title: Whether a title should be captured

    Returns:
        Fresh extractor instance
    """
    if wire_format is WireFormat.EVENT_STREAM:
        return EventRecordExtractor(capture_title=capture_title)
    return CardTextExtractor(capture_title=capture_title)
