"""
Client configuration.

Explicit, session-scoped settings (endpoint, wire format, timeouts, limits)
with an environment loader. Nothing here is global mutable state: each
FlashcardClient holds its own ClientConfig.
"""

from __future__ import annotations

import os
from contextlib import suppress
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

EDGE_FUNCTION_PATH = "/functions/v1/generate-flashcards"


class WireFormat(str, Enum):
    """Wire encoding of the streaming response."""

    EVENT_STREAM = "event_stream"
    """Event-framed text: `event:` / `data:` line pairs (edge function)."""

    TEXT = "text"
    """Flat delimiter-marked text body (TITLE:, CARD_START ... CARD_END)."""

    CHAT_COMPLETIONS = "chat_completions"
    """Flat delimiter-marked text carried in OpenAI-compatible delta frames."""

    @property
    def accept(self) -> str:
        """Accept header for streaming requests in this format."""
        if self is WireFormat.TEXT:
            return "text/plain"
        return "text/event-stream"


class ClientConfig(BaseModel):
    """Configuration for FlashcardClient and GenerationSession."""

    model_config = ConfigDict(frozen=True)

    endpoint_url: str | None = Field(default=None, description="Generation endpoint URL")
    wire_format: WireFormat = Field(default=WireFormat.EVENT_STREAM)
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout (s)")
    connect_timeout: float = Field(default=10.0, gt=0, description="Connect timeout (s)")
    inactivity_timeout: float | None = Field(
        default=30.0, description="Max wait for the next chunk (s); None disables"
    )
    session_timeout: float | None = Field(
        default=None, description="Overall deadline for one session (s)"
    )
    max_prompt_length: int = Field(default=250, ge=1)
    max_cards_per_request: int = Field(default=50, ge=1)
    max_line_bytes: int = Field(default=1024 * 1024, ge=64)
    model: str = Field(default="gpt-4o-mini", description="Model for chat_completions")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    proxy: str | None = Field(default=None, description="HTTP proxy URL")

    @property
    def is_configured(self) -> bool:
        """Check whether an endpoint URL is available."""
        return bool(self.endpoint_url)

    @classmethod
    def from_env(cls, **overrides: object) -> ClientConfig:
        """Build a configuration from environment variables.

        Recognized variables:
            FLASHCARD_ENDPOINT_URL: full endpoint URL
            SUPABASE_URL: project URL; the edge function path is appended
            FLASHCARD_WIRE_FORMAT: event_stream, text or chat_completions
            FLASHCARD_TIMEOUT_SECS: request timeout
            FLASHCARD_INACTIVITY_TIMEOUT_SECS: inactivity timeout
            FLASHCARD_SESSION_TIMEOUT_SECS: overall session deadline
            FLASHCARD_MAX_CARDS: max cards per request
            FLASHCARD_MODEL: model for chat_completions
            FLASHCARD_PROXY_URL: proxy, honoured only with FLASHCARD_HTTP_TRUST_ENV=1

        Unparseable values are ignored.

        Args:
            **overrides: Explicit field values taking precedence

        Returns:
            ClientConfig instance
        """
        values: dict[str, object] = {}

        endpoint = os.getenv("FLASHCARD_ENDPOINT_URL")
        if not endpoint:
            supabase_url = os.getenv("SUPABASE_URL")
            if supabase_url:
                endpoint = supabase_url.rstrip("/") + EDGE_FUNCTION_PATH
        if endpoint:
            values["endpoint_url"] = endpoint

        wire_format = os.getenv("FLASHCARD_WIRE_FORMAT")
        if wire_format:
            with suppress(ValueError):
                values["wire_format"] = WireFormat(wire_format.strip().lower())

        for env_var, name in (
            ("FLASHCARD_TIMEOUT_SECS", "request_timeout"),
            ("FLASHCARD_INACTIVITY_TIMEOUT_SECS", "inactivity_timeout"),
            ("FLASHCARD_SESSION_TIMEOUT_SECS", "session_timeout"),
        ):
            raw = os.getenv(env_var)
            if raw:
                with suppress(ValueError):
                    seconds = float(raw)
                    if seconds > 0:
                        values[name] = seconds

        max_cards = os.getenv("FLASHCARD_MAX_CARDS")
        if max_cards:
            with suppress(ValueError):
                parsed = int(max_cards)
                if parsed >= 1:
                    values["max_cards_per_request"] = parsed

        model = os.getenv("FLASHCARD_MODEL")
        if model:
            values["model"] = model

        if os.getenv("FLASHCARD_HTTP_TRUST_ENV", "0") == "1":
            proxy = os.getenv("FLASHCARD_PROXY_URL")
            if proxy:
                values["proxy"] = proxy

        values.update(overrides)
        return cls(**values)
