"""
Builder for fluent FlashcardClient construction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flashcard_stream.config import EDGE_FUNCTION_PATH, ClientConfig, WireFormat
from flashcard_stream.transport import StaticTokenProvider

if TYPE_CHECKING:
    from flashcard_stream.client.core import FlashcardClient
    from flashcard_stream.transport import HttpTransport, Identity, TokenProvider


class FlashcardClientBuilder:
    """Builder for creating FlashcardClient instances with custom configuration.

    Values set on the builder take precedence over environment variables.

    Example:
        >>> client = (
        ...     FlashcardClientBuilder()
        ...     .supabase_url("https://xyz.supabase.co")
        ...     .wire_format(WireFormat.EVENT_STREAM)
        ...     .inactivity_timeout(20.0)
        ...     .user(Identity(id="user-1"))
        ...     .build()
        ... )
    """

    def __init__(self) -> None:
        self._overrides: dict[str, Any] = {}
        self._use_env = True
        self._token_provider: TokenProvider | None = None
        self._identity: Identity | None = None
        self._transport: HttpTransport | None = None

    def endpoint_url(self, url: str) -> FlashcardClientBuilder:
        """Set the full generation endpoint URL.

        Args:
            url: Endpoint URL

        Returns:
            Self for chaining
        """
        self._overrides["endpoint_url"] = url
        return self

    def supabase_url(self, url: str) -> FlashcardClientBuilder:
        """Derive the endpoint from a Supabase project URL.

        Args:
            url: Project URL, e.g. "https://xyz.supabase.co"

        Returns:
            Self for chaining
        """
        self._overrides["endpoint_url"] = url.rstrip("/") + EDGE_FUNCTION_PATH
        return self

    def wire_format(self, wire_format: WireFormat | str) -> FlashcardClientBuilder:
        """Set the wire encoding of the streaming response.

        Returns:
            Self for chaining
        """
        self._overrides["wire_format"] = WireFormat(wire_format)
        return self

    def timeout(self, seconds: float) -> FlashcardClientBuilder:
        """Set the per-request timeout.

        Returns:
            Self for chaining
        """
        self._overrides["request_timeout"] = seconds
        return self

    def inactivity_timeout(self, seconds: float | None) -> FlashcardClientBuilder:
        """Set the maximum wait for the next chunk (None disables it).

        Returns:
            Self for chaining
        """
        self._overrides["inactivity_timeout"] = seconds
        return self

    def session_timeout(self, seconds: float | None) -> FlashcardClientBuilder:
        """Set the overall deadline of one session.

        Returns:
            Self for chaining
        """
        self._overrides["session_timeout"] = seconds
        return self

    def max_cards(self, n: int) -> FlashcardClientBuilder:
        """Set the maximum number of cards per request.

        Returns:
            Self for chaining
        """
        self._overrides["max_cards_per_request"] = n
        return self

    def model(self, model: str) -> FlashcardClientBuilder:
        """Set the model used by the chat_completions format.

        Returns:
            Self for chaining
        """
        self._overrides["model"] = model
        return self

    def proxy(self, url: str) -> FlashcardClientBuilder:
        """Set an HTTP proxy.

        Returns:
            Self for chaining
        """
        self._overrides["proxy"] = url
        return self

    def access_token(self, token: str) -> FlashcardClientBuilder:
        """Use a fixed access token.

        Returns:
            Self for chaining
        """
        self._token_provider = StaticTokenProvider(token)
        return self

    def token_provider(self, provider: TokenProvider) -> FlashcardClientBuilder:
        """Use a custom token provider.

        Returns:
            Self for chaining
        """
        self._token_provider = provider
        return self

    def user(self, identity: Identity) -> FlashcardClientBuilder:
        """Set the signed-in identity.

        Returns:
            Self for chaining
        """
        self._identity = identity
        return self

    def transport(self, transport: HttpTransport) -> FlashcardClientBuilder:
        """Use a pre-built transport.

        Returns:
            Self for chaining
        """
        self._transport = transport
        return self

    def from_env(self, enable: bool = True) -> FlashcardClientBuilder:
        """Read unset values from environment variables (default on).

        Returns:
            Self for chaining
        """
        self._use_env = enable
        return self

    def build_config(self) -> ClientConfig:
        """Build the configuration alone."""
        if self._use_env:
            return ClientConfig.from_env(**self._overrides)
        return ClientConfig(**self._overrides)

    def build(self) -> FlashcardClient:
        """Build the FlashcardClient instance.

        Returns:
            Configured FlashcardClient
        """
        from flashcard_stream.client.core import FlashcardClient

        return FlashcardClient(
            self.build_config(),
            transport=self._transport,
            token_provider=self._token_provider,
            identity=self._identity,
        )
