"""Scripted transport and stream fixtures shared by the test suite."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Any

from flashcard_stream.types import Flashcard

ENDPOINT = "https://example.supabase.co/functions/v1/generate-flashcards"


class Delay:
    """Script step: pause before the next chunk."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds


class ScriptedResponse:
    """Response whose body replays a script of chunks, delays and exceptions."""

    def __init__(self, script: Iterable[Any]) -> None:
        self._script = list(script)

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        for step in self._script:
            if isinstance(step, Delay):
                await asyncio.sleep(step.seconds)
            elif isinstance(step, BaseException):
                raise step
            elif isinstance(step, str):
                yield step.encode("utf-8")
            else:
                yield step


class FakeTransport:
    """Scripted in-memory transport used in place of HttpTransport."""

    def __init__(
        self,
        chunks: Iterable[Any] = (),
        *,
        body: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.chunks = list(chunks)
        self.body = body
        self.error = error
        self.stream_calls: list[dict[str, Any]] = []
        self.json_calls: list[dict[str, Any]] = []
        self.released = 0

    @property
    def call_count(self) -> int:
        return len(self.stream_calls) + len(self.json_calls)

    @asynccontextmanager
    async def stream_post(
        self,
        payload: dict[str, Any],
        *,
        token: str | None = None,
        accept: str = "text/event-stream",
    ) -> AsyncIterator[ScriptedResponse]:
        self.stream_calls.append({"payload": payload, "token": token, "accept": accept})
        if self.error is not None:
            raise self.error
        try:
            yield ScriptedResponse(self.chunks)
        finally:
            self.released += 1

    async def post_json(
        self,
        payload: dict[str, Any],
        *,
        token: str | None = None,
    ) -> dict[str, Any]:
        self.json_calls.append({"payload": payload, "token": token})
        if self.error is not None:
            raise self.error
        return self.body or {}

    async def close(self) -> None:
        pass


class Collector:
    """Sink recording every (index, card) delivery."""

    def __init__(self) -> None:
        self.items: list[tuple[int, Flashcard]] = []

    def __call__(self, card: Flashcard, index: int) -> None:
        self.items.append((index, card))

    @property
    def indices(self) -> list[int]:
        return [index for index, _ in self.items]

    @property
    def questions(self) -> list[str]:
        return [card.question for _, card in self.items]


def card_block(question: str, answer: str) -> str:
    """Flat-text card block."""
    return f"CARD_START\nQ: {question}\nA: {answer}\nCARD_END\n"


def event(name: str, payload: dict[str, Any]) -> str:
    """Event-stream frame."""
    return f"event: {name}\ndata: {json.dumps(payload)}\n\n"


def chat_delta(content: str) -> str:
    """Chat-completion delta frame."""
    return f"data: {json.dumps({'choices': [{'delta': {'content': content}}]})}\n\n"


def split_at(data: bytes, *offsets: int) -> list[bytes]:
    """Split bytes at the given offsets."""
    bounds = [0, *offsets, len(data)]
    return [data[a:b] for a, b in zip(bounds, bounds[1:])]
