"""Root pytest fixtures for flashcard-stream tests."""

from __future__ import annotations

import io
import json
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from flashcard_stream.config import ClientConfig, WireFormat
from flashcard_stream.telemetry import FlashcardLogger, LogLevel
from flashcard_stream.transport import Identity, StaticTokenProvider
from flashcard_stream.transport import auth as auth_module
from tests.support import ENDPOINT

_ENV_VARS = (
    "FLASHCARD_ENDPOINT_URL",
    "SUPABASE_URL",
    "FLASHCARD_WIRE_FORMAT",
    "FLASHCARD_TIMEOUT_SECS",
    "FLASHCARD_INACTIVITY_TIMEOUT_SECS",
    "FLASHCARD_SESSION_TIMEOUT_SECS",
    "FLASHCARD_MAX_CARDS",
    "FLASHCARD_MODEL",
    "FLASHCARD_PROXY_URL",
    "FLASHCARD_HTTP_TRUST_ENV",
    "FLASHCARD_ACCESS_TOKEN",
)

@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate tests from the caller's environment and system keyring."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(auth_module, "HAS_KEYRING", False)

@pytest.fixture
def identity() -> Identity:
    return Identity(id="user-1", email="user@example.com")

@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider("session-token")

@pytest.fixture
def text_config() -> ClientConfig:
    return ClientConfig(endpoint_url=ENDPOINT, wire_format=WireFormat.TEXT)

@pytest.fixture
def event_config() -> ClientConfig:
    return ClientConfig(endpoint_url=ENDPOINT, wire_format=WireFormat.EVENT_STREAM)

@pytest.fixture
def read_logs() -> Iterator[Callable[[], list[dict[str, Any]]]]:
    """Route package logs to a buffer; the fixture returns a reader of parsed JSON lines."""
    stream = io.StringIO()
    FlashcardLogger.configure(level=LogLevel.DEBUG, format="json", stream=stream)

    def read() -> list[dict[str, Any]]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    try:
        yield read
    finally:
        FlashcardLogger.configure(level=LogLevel.WARNING, format="text")
