"""
Flashcard data model.

Records are immutable once emitted; field caps are applied after trimming.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

MAX_FIELD_LENGTH = 190
MAX_TITLE_LENGTH = 50


def clamp_text(value: str, limit: int) -> str:
    """Trim surrounding whitespace and cap to `limit` characters."""
    return value.strip()[:limit]


class Flashcard(BaseModel):
    """One extracted question/answer pair."""

    model_config = ConfigDict(frozen=True)

    question: str = Field(description="Question text, at most 190 characters")
    answer: str = Field(description="Answer text, at most 190 characters")

    @classmethod
    def from_raw(cls, question: str, answer: str) -> Flashcard:
        """Build a card from untrimmed wire text, applying the field caps."""
        return cls(
            question=clamp_text(question, MAX_FIELD_LENGTH),
            answer=clamp_text(answer, MAX_FIELD_LENGTH),
        )


class GenerationRequest(BaseModel):
    """Parameters of one generation request."""

    model_config = ConfigDict(frozen=True)

    prompt: str = Field(description="Topic prompt supplied by the user")
    count: int = Field(description="Number of flashcards requested")
    generate_title: bool = Field(default=False, description="Ask for a set title")

    def to_payload(self) -> dict[str, object]:
        """Request body understood by the generation endpoint."""
        return {
            "prompt": self.prompt,
            "count": self.count,
            "generateTitle": self.generate_title,
        }


class SinkFailure(BaseModel):
    """A sink raised while receiving a card; reported after the stream ends.

    Attributes:
        index: Sequence index of the card being delivered
        error: Exception raised by the sink
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    index: int
    error: BaseException

    def __str__(self) -> str:
        return f"sink failed for card {self.index}: {self.error!r}"


class GenerationResult(BaseModel):
    """Final ordered result of a generation session.

    Attributes:
        flashcards: Cards in emission order
        title: Optional set title (at most 50 characters)
        sink_failures: Non-fatal failures raised by the caller's sink
    """

    flashcards: list[Flashcard] = Field(default_factory=list)
    title: str | None = None
    sink_failures: list[SinkFailure] = Field(default_factory=list, exclude=True)

    @property
    def has_warnings(self) -> bool:
        """Check whether the sink reported failures."""
        return len(self.sink_failures) > 0

    def __len__(self) -> int:
        return len(self.flashcards)
