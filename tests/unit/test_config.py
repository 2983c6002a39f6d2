"""Tests for client configuration."""

import pydantic
import pytest

from flashcard_stream.config import EDGE_FUNCTION_PATH, ClientConfig, WireFormat
from tests.support import ENDPOINT


class TestWireFormat:
    """Tests for WireFormat."""

    def test_accept_headers(self) -> None:
        """Test the Accept header per format."""
        assert WireFormat.TEXT.accept == "text/plain"
        assert WireFormat.EVENT_STREAM.accept == "text/event-stream"
        assert WireFormat.CHAT_COMPLETIONS.accept == "text/event-stream"

    def test_from_value(self) -> None:
        """Test formats parse from their string values."""
        assert WireFormat("event_stream") is WireFormat.EVENT_STREAM


class TestClientConfig:
    """Tests for ClientConfig."""

    def test_defaults(self) -> None:
        """Test default limits."""
        config = ClientConfig()

        assert config.endpoint_url is None
        assert config.is_configured is False
        assert config.wire_format is WireFormat.EVENT_STREAM
        assert config.max_prompt_length == 250
        assert config.max_cards_per_request == 50
        assert config.inactivity_timeout == 30.0
        assert config.session_timeout is None

    def test_frozen(self) -> None:
        """Test configuration is immutable."""
        config = ClientConfig(endpoint_url=ENDPOINT)

        with pytest.raises(pydantic.ValidationError):
            config.endpoint_url = "https://other.example.com"  # type: ignore[misc]

    def test_rejects_invalid_timeout(self) -> None:
        """Test non-positive request timeouts are rejected."""
        with pytest.raises(pydantic.ValidationError):
            ClientConfig(request_timeout=0)


class TestFromEnv:
    """Tests for ClientConfig.from_env."""

    def test_empty_environment(self) -> None:
        """Test an empty environment yields defaults."""
        assert ClientConfig.from_env() == ClientConfig()

    def test_endpoint_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test an explicit endpoint URL."""
        monkeypatch.setenv("FLASHCARD_ENDPOINT_URL", "https://api.example.com/generate")

        assert ClientConfig.from_env().endpoint_url == "https://api.example.com/generate"

    def test_supabase_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the edge function path is appended to the project URL."""
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")

        config = ClientConfig.from_env()

        assert config.endpoint_url == "https://example.supabase.co" + EDGE_FUNCTION_PATH

    def test_endpoint_url_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test an explicit endpoint takes precedence over the project URL."""
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        monkeypatch.setenv("FLASHCARD_ENDPOINT_URL", "https://api.example.com/generate")

        assert ClientConfig.from_env().endpoint_url == "https://api.example.com/generate"

    def test_numeric_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test timeouts and limits are parsed."""
        monkeypatch.setenv("FLASHCARD_WIRE_FORMAT", " TEXT ")
        monkeypatch.setenv("FLASHCARD_TIMEOUT_SECS", "12.5")
        monkeypatch.setenv("FLASHCARD_INACTIVITY_TIMEOUT_SECS", "5")
        monkeypatch.setenv("FLASHCARD_SESSION_TIMEOUT_SECS", "120")
        monkeypatch.setenv("FLASHCARD_MAX_CARDS", "20")
        monkeypatch.setenv("FLASHCARD_MODEL", "gpt-4o")

        config = ClientConfig.from_env()

        assert config.wire_format is WireFormat.TEXT
        assert config.request_timeout == 12.5
        assert config.inactivity_timeout == 5.0
        assert config.session_timeout == 120.0
        assert config.max_cards_per_request == 20
        assert config.model == "gpt-4o"

    def test_unparseable_values_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test invalid values fall back to defaults."""
        monkeypatch.setenv("FLASHCARD_WIRE_FORMAT", "xml")
        monkeypatch.setenv("FLASHCARD_TIMEOUT_SECS", "soon")
        monkeypatch.setenv("FLASHCARD_MAX_CARDS", "0")

        assert ClientConfig.from_env() == ClientConfig()

    def test_proxy_requires_trust_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the proxy is only honoured when env trust is enabled."""
        monkeypatch.setenv("FLASHCARD_PROXY_URL", "http://proxy:8080")
        assert ClientConfig.from_env().proxy is None

        monkeypatch.setenv("FLASHCARD_HTTP_TRUST_ENV", "1")
        assert ClientConfig.from_env().proxy == "http://proxy:8080"

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test explicit overrides take precedence."""
        monkeypatch.setenv("FLASHCARD_MAX_CARDS", "20")

        config = ClientConfig.from_env(max_cards_per_request=5)

        assert config.max_cards_per_request == 5
