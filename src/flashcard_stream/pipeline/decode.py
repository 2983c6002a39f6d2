"""
Frame decoders for the supported wire encodings.

Implements:
- FlatTextDecoder: flat delimiter-marked text, passed through as fragments
- EventStreamDecoder: `event:` / `data:` line pairs with JSON payloads
- ChatCompletionDecoder: OpenAI-compatible `data:` deltas carrying flat text

Line-framed decoders buffer raw bytes and decode a line only once its
terminating newline has arrived, so chunk boundaries inside a multi-byte
character never corrupt the text.
"""

from __future__ import annotations

import codecs
import json
from typing import TYPE_CHECKING, Any

from flashcard_stream.config import WireFormat
from flashcard_stream.errors import MalformedFrameError
from flashcard_stream.pipeline.base import FrameDecoder
from flashcard_stream.telemetry import get_logger
from flashcard_stream.types.frames import (
    DONE_EVENT,
    ERROR_EVENT,
    RECOGNIZED_EVENTS,
    TITLE_EVENT,
    EventFrame,
    TextFragment,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from flashcard_stream.types.frames import Frame

logger = get_logger(__name__)

DEFAULT_MAX_LINE_BYTES = 1024 * 1024

# Events whose loss does not affect the card sequence
SKIPPABLE_EVENTS = frozenset({TITLE_EVENT, DONE_EVENT})


def _as_bytes(chunk: bytes | str) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)


def _split_field(line: str) -> tuple[str, str]:
    """Split `name: value` into its parts (one optional space after the colon)."""
    name, _, value = line.partition(":")
    if value.startswith(" "):
        value = value[1:]
    return name, value


class LineBuffer:
    """Accumulates raw bytes and releases complete newline-terminated lines.

    The unterminated tail is retained verbatim across chunks. A tail that
    grows past `max_line_bytes` without a newline cannot be resynchronized.
    """

    def __init__(self, max_line_bytes: int = DEFAULT_MAX_LINE_BYTES) -> None:
        self._buffer = bytearray()
        self._scan_from = 0
        self._max_line_bytes = max_line_bytes

    def __len__(self) -> int:
        return len(self._buffer)

    def push(self, chunk: bytes) -> Iterator[bytes]:
        """Append a chunk and yield each completed line without its terminator.

        Args:
            chunk: Raw bytes

        Yields:
            Complete lines (CRLF and LF terminators both accepted)

        Raises:
            MalformedFrameError: If the pending line exceeds the size bound
        """
        self._buffer.extend(chunk)
        while True:
            newline = self._buffer.find(b"\n", self._scan_from)
            if newline == -1:
                # Only the new bytes need scanning next time
                self._scan_from = len(self._buffer)
                if len(self._buffer) > self._max_line_bytes:
                    raise MalformedFrameError(
                        f"Line exceeds {self._max_line_bytes} bytes without a terminator",
                        decoder="line",
                    )
                return
            line = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            self._scan_from = 0
            if line.endswith(b"\r"):
                line = line[:-1]
            yield line

    def drain(self) -> bytes:
        """Remove and return the unterminated tail."""
        tail = bytes(self._buffer)
        self._buffer.clear()
        self._scan_from = 0
        return tail


def _decode_line(raw: bytes, decoder: str) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Replacing invalid UTF-8 in line", decoder=decoder, size=len(raw))
        return raw.decode("utf-8", errors="replace")


class FlatTextDecoder(FrameDecoder):
    """Pass-through decoder for flat text bodies.

    No framing is imposed; delimiter matching is the extractor's job. An
    incremental UTF-8 decoder holds back a trailing partial character until
    its remaining bytes arrive.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: bytes | str) -> Iterator[Frame]:
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        if text:
            yield TextFragment(text=text)

    def finish(self) -> Iterator[Frame]:
        tail = self._decoder.decode(b"", final=True)
        if tail:
            yield TextFragment(text=tail)


class EventStreamDecoder(FrameDecoder):
    """Event-stream decoder for the edge function's streaming response.

    Recognizes the two-line pattern:
    ```
    event: card
    data: {"question": "...", "answer": "...", "index": 0}
    ```

    Recognized event types are title, card, error and done. Any other line
    is skipped with a warning. An `error` frame is the last frame this
    decoder produces; everything after it is discarded.
    """

    def __init__(self, max_line_bytes: int = DEFAULT_MAX_LINE_BYTES) -> None:
        self._lines = LineBuffer(max_line_bytes)
        self._pending_event: str | None = None
        self._closed = False

    @property
    def pending_event(self) -> str | None:
        """Event type still waiting for its data line."""
        return self._pending_event

    def feed(self, chunk: bytes | str) -> Iterator[Frame]:
        if self._closed:
            return
        for raw in self._lines.push(_as_bytes(chunk)):
            frame = self._handle_line(_decode_line(raw, "event_stream"))
            if frame is None:
                continue
            yield frame
            if frame.is_error:
                self._closed = True
                return

    def finish(self) -> Iterator[Frame]:
        if self._closed:
            return
        self._closed = True

        tail = self._lines.drain()
        if tail.strip():
            # The stream ended without a final newline
            try:
                frame = self._handle_line(_decode_line(tail, "event_stream"))
            except MalformedFrameError:
                logger.warning("Discarding truncated frame at end of stream", size=len(tail))
                frame = None
            if frame is not None:
                yield frame

        if self._pending_event is not None:
            logger.warning(
                "Stream ended before data line of event", event=self._pending_event
            )
            self._pending_event = None

    def _handle_line(self, line: str) -> EventFrame | None:
        if not line.strip():
            if self._pending_event is not None:
                logger.warning("Dropping event without data line", event=self._pending_event)
                self._pending_event = None
            return None

        # Comment line
        if line.startswith(":"):
            return None

        name, value = _split_field(line)

        if name == "event":
            if self._pending_event is not None:
                logger.warning("Dropping event without data line", event=self._pending_event)
            self._pending_event = value.strip()
            return None

        if name == "data":
            event_type = self._pending_event
            self._pending_event = None
            if event_type is None:
                logger.warning("Skipping data line without event", line=line[:120])
                return None
            if event_type not in RECOGNIZED_EVENTS:
                logger.warning("Skipping unrecognized event", event=event_type)
                return None
            payload = self._parse_payload(event_type, value)
            if payload is None:
                return None
            return EventFrame(event=event_type, data=payload)

        if name in ("id", "retry"):
            return None

        if self._pending_event is not None:
            logger.warning("Dropping event without data line", event=self._pending_event)
            self._pending_event = None
        logger.warning("Skipping unrecognized line", line=line[:120])
        return None

    @staticmethod
    def _parse_payload(event_type: str, value: str) -> dict[str, Any] | None:
        """Decode a `data:` payload.

        A bad `title` or `done` payload is dropped, since the next `event:`
        line resynchronizes the stream. A bad `card` or `error` payload is
        fatal: skipping it would lose a record or hide a failure.
        """
        try:
            payload = json.loads(value)
        except json.JSONDecodeError as e:
            if event_type in SKIPPABLE_EVENTS:
                logger.warning("Skipping event with invalid JSON", event=event_type, error=e.msg)
                return None
            raise MalformedFrameError(
                f"Invalid JSON payload for '{event_type}' event: {e.msg}",
                decoder="event_stream",
                line=value,
            ) from e
        if not isinstance(payload, dict):
            if event_type in SKIPPABLE_EVENTS:
                logger.warning("Skipping event with non-object payload", event=event_type)
                return None
            raise MalformedFrameError(
                f"Payload for '{event_type}' event is not an object",
                decoder="event_stream",
                line=value,
            )
        return payload


class ChatCompletionDecoder(FrameDecoder):
    """Decoder for OpenAI-compatible streamed chat completions.

    Parses:
    ```
    data: {"choices": [{"delta": {"content": "CARD_"}}]}

    data: [DONE]
    ```

    Each delta's content becomes a TextFragment; an `{"error": ...}` payload
    becomes an error EventFrame.
    """

    def __init__(
        self,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        done_signal: str = "[DONE]",
    ) -> None:
        self._lines = LineBuffer(max_line_bytes)
        self._done_signal = done_signal
        self._closed = False

    def feed(self, chunk: bytes | str) -> Iterator[Frame]:
        if self._closed:
            return
        for raw in self._lines.push(_as_bytes(chunk)):
            frame = self._handle_line(_decode_line(raw, "chat_completions"))
            if frame is not None:
                yield frame
            if self._closed:
                return

    def finish(self) -> Iterator[Frame]:
        if self._closed:
            return
        tail = self._lines.drain()
        self._closed = True
        if tail.strip():
            try:
                frame = self._handle_line(_decode_line(tail, "chat_completions"))
            except MalformedFrameError:
                logger.warning("Discarding truncated delta at end of stream", size=len(tail))
                frame = None
            if frame is not None:
                yield frame

    def _handle_line(self, line: str) -> Frame | None:
        if not line.strip() or line.startswith(":"):
            return None

        name, value = _split_field(line)
        if name != "data":
            return None

        data = value.strip()
        if data == self._done_signal:
            self._closed = True
            return None

        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise MalformedFrameError(
                f"Invalid JSON in completion delta: {e.msg}",
                decoder="chat_completions",
                line=data,
            ) from e

        if not isinstance(payload, dict):
            raise MalformedFrameError(
                "Completion delta is not an object", decoder="chat_completions", line=data
            )

        if "error" in payload:
            self._closed = True
            return EventFrame(event=ERROR_EVENT, data=payload)

        choices = payload.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        delta = choices[0].get("delta")
        if not isinstance(delta, dict):
            return None
        content = delta.get("content")
        if isinstance(content, str) and content:
            return TextFragment(text=content)
        return None


def create_decoder(
    wire_format: WireFormat,
    *,
    max_line_bytes: int | None = None,
) -> FrameDecoder:
    """Create the decoder for a wire format.

    Args:
        wire_format: Selected wire encoding
        max_line_bytes: Upper bound for one buffered line

    Returns:
        Fresh decoder instance
    """
    limit = max_line_bytes or DEFAULT_MAX_LINE_BYTES
    if wire_format is WireFormat.EVENT_STREAM:
        return EventStreamDecoder(max_line_bytes=limit)
    if wire_format is WireFormat.CHAT_COMPLETIONS:
        return ChatCompletionDecoder(max_line_bytes=limit)
    return FlatTextDecoder()
