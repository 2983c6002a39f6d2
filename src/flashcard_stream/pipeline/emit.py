"""
In-order delivery of extracted cards to a caller-supplied sink.

The sink is invoked exactly once per card, with the card and its sequence
index, before the card is appended to the session's accumulator. A failing
sink never stops extraction; its failures are collected and reported once
the stream completes.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from flashcard_stream.errors import ProtocolViolationError
from flashcard_stream.telemetry import get_logger
from flashcard_stream.types.cards import Flashcard, SinkFailure

if TYPE_CHECKING:
    from flashcard_stream.client.cancel import CancelToken

logger = get_logger(__name__)

RecordSink = Callable[[Flashcard, int], Awaitable[None] | None]
"""Per-card receiver: `sink(card, index)`, plain or async."""


class Emitter:
    """Assigns sequence indices and delivers cards in order.

    Sequence indices start at 0 and grow by exactly 1 per delivered card.
    When a card carries an index claimed by the wire, the claim must match
    the next sequence index; a mismatch is a protocol violation, never a
    silent reorder.

    Once the cancel token fires, every further emit is suppressed.

    Example:
        >>> received = []
        >>> emitter = Emitter(lambda card, index: received.append((index, card)))
        >>> await emitter.emit(Flashcard(question="2+2?", answer="4"))
        True
    """

    def __init__(
        self,
        sink: RecordSink | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> None:
        self._sink = sink
        self._cancel_token = cancel_token
        self._records: list[Flashcard] = []
        self._failures: list[SinkFailure] = []

    @property
    def records(self) -> list[Flashcard]:
        """Cards delivered so far, in sequence order."""
        return list(self._records)

    @property
    def failures(self) -> list[SinkFailure]:
        """Non-fatal sink failures collected so far."""
        return list(self._failures)

    @property
    def next_index(self) -> int:
        return len(self._records)

    @property
    def suppressed(self) -> bool:
        """Check whether delivery has been stopped by cancellation."""
        return self._cancel_token is not None and self._cancel_token.is_cancelled

    async def emit(self, card: Flashcard, *, claimed_index: int | None = None) -> bool:
        """Deliver one card.

        Args:
            card: Completed card
            claimed_index: Index carried by the wire payload, if any

        Returns:
            True if the card was delivered, False if delivery is suppressed

        Raises:
            ProtocolViolationError: If `claimed_index` is not the next index
        """
        if self.suppressed:
            logger.debug("Suppressing card after cancellation", index=self.next_index)
            return False

        index = self.next_index
        if claimed_index is not None and claimed_index != index:
            raise ProtocolViolationError(expected=index, actual=claimed_index)

        try:
            await self._notify(card, index)
        finally:
            # Once the sink has seen the card it stays delivered, even if interrupted
            self._records.append(card)
        return True

    async def _notify(self, card: Flashcard, index: int) -> None:
        if self._sink is None:
            return
        try:
            result = self._sink(card, index)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._failures.append(SinkFailure(index=index, error=e))
            logger.warning("Sink failed for card", index=index, error=repr(e))
