"""
Frames produced by the frame decoders.

A frame is one structurally complete unit decoded from the wire: either a
raw text fragment (flat text streams) or a typed event with a JSON payload
(event-stream framing).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

TITLE_EVENT = "title"
CARD_EVENT = "card"
ERROR_EVENT = "error"
DONE_EVENT = "done"

RECOGNIZED_EVENTS = frozenset({TITLE_EVENT, CARD_EVENT, ERROR_EVENT, DONE_EVENT})


class TextFragment(BaseModel):
    """Raw decoded text from a flat text stream."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Decoded text, may split any token")


class EventFrame(BaseModel):
    """A typed event: an `event:` line paired with its `data:` line."""

    model_config = ConfigDict(frozen=True)

    event: str = Field(description="Event type (title, card, error, done)")
    data: dict[str, Any] = Field(default_factory=dict, description="Decoded JSON payload")

    @property
    def is_error(self) -> bool:
        return self.event == ERROR_EVENT


class CardPayload(BaseModel):
    """Payload of a `card` event."""

    question: str
    answer: str
    index: int = Field(ge=0)


class TitlePayload(BaseModel):
    """Payload of a `title` event."""

    title: str


class DonePayload(BaseModel):
    """Payload of a `done` event."""

    model_config = ConfigDict(populate_by_name=True)

    total_cards: int | None = Field(default=None, alias="totalCards")


Frame = TextFragment | EventFrame
