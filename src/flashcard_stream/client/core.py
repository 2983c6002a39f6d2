"""
Core FlashcardClient implementation.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any, Literal

from flashcard_stream.client.builder import FlashcardClientBuilder
from flashcard_stream.client.session import GenerationSession
from flashcard_stream.config import ClientConfig
from flashcard_stream.transport import EnvTokenProvider, HttpTransport
from flashcard_stream.types.cards import GenerationRequest

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from flashcard_stream.client.cancel import CancelToken
    from flashcard_stream.pipeline.emit import RecordSink
    from flashcard_stream.transport import Identity, TokenProvider
    from flashcard_stream.types.cards import Flashcard, GenerationResult

UnavailableReason = Literal["not-configured", "not-authenticated"]


class FlashcardClient:
    """Entry point for AI flashcard generation.

    Holds session-scoped dependencies (configuration, transport, token
    provider, signed-in identity) and creates one GenerationSession per
    request.

    Example:
        >>> client = FlashcardClient.from_env()
        >>> client.set_user(Identity(id="user-1"))
        >>> cards = await client.generate("Photosynthesis", 5)

        >>> # Incremental delivery
        >>> async for index, card in client.stream("World War II", 10):
        ...     print(index, card.question)

        >>> # Builder
        >>> client = (
        ...     FlashcardClient.builder()
        ...     .endpoint_url("https://example.supabase.co/functions/v1/generate-flashcards")
        ...     .access_token(token)
        ...     .build()
        ... )
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: HttpTransport | None = None,
        token_provider: TokenProvider | None = None,
        identity: Identity | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._transport = transport
        self._token_provider = token_provider or EnvTokenProvider()
        self._identity = identity
        self._last_session: GenerationSession | None = None

    @classmethod
    def from_env(cls, **overrides: Any) -> FlashcardClient:
        """Create a client configured from environment variables.

        Args:
            **overrides: Explicit ClientConfig field values

        Returns:
            FlashcardClient instance
        """
        return cls(ClientConfig.from_env(**overrides))

    @classmethod
    def builder(cls) -> FlashcardClientBuilder:
        """Get a builder for advanced configuration."""
        return FlashcardClientBuilder()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def last_session(self) -> GenerationSession | None:
        """Most recently started session, for stats and partial results."""
        return self._last_session

    def set_user(self, identity: Identity | None) -> None:
        """Set (or clear, with None) the signed-in identity."""
        self._identity = identity

    def is_configured(self) -> bool:
        return self._config.is_configured

    def is_authenticated(self) -> bool:
        return self._identity is not None

    def is_available(self) -> bool:
        """Check whether generation can be attempted at all."""
        return self.unavailable_reason() is None

    def unavailable_reason(self) -> UnavailableReason | None:
        """Why generation is unavailable, or None if it is available."""
        if not self.is_configured():
            return "not-configured"
        if not self.is_authenticated():
            return "not-authenticated"
        return None

    def _get_transport(self) -> HttpTransport | None:
        """Get or create the transport; None while no endpoint is configured."""
        if self._transport is None and self._config.endpoint_url:
            self._transport = HttpTransport(
                self._config.endpoint_url,
                timeout=self._config.request_timeout,
                connect_timeout=self._config.connect_timeout,
                proxy=self._config.proxy,
            )
        return self._transport

    def session(
        self,
        prompt: str,
        count: int,
        *,
        generate_title: bool = False,
        sink: RecordSink | None = None,
        cancel_token: CancelToken | None = None,
    ) -> GenerationSession:
        """Create a single-use session for one request.

        Args:
            prompt: Topic prompt
            count: Number of cards requested
            generate_title: Whether to capture a set title
            sink: Per-card receiver; None selects the non-streaming fallback
            cancel_token: Token the caller may cancel

        Returns:
            GenerationSession in state IDLE
        """
        session = GenerationSession(
            GenerationRequest(prompt=prompt, count=count, generate_title=generate_title),
            config=self._config,
            transport=self._get_transport(),
            identity=self._identity,
            token_provider=self._token_provider,
            sink=sink,
            cancel_token=cancel_token,
        )
        self._last_session = session
        return session

    async def generate_with_title(
        self,
        prompt: str,
        count: int,
        *,
        on_card: RecordSink | None = None,
        cancel_token: CancelToken | None = None,
    ) -> GenerationResult:
        """Generate cards together with a set title.

        Args:
            prompt: Topic prompt
            count: Number of cards requested
            on_card: Optional per-card sink for incremental delivery
            cancel_token: Token the caller may cancel

        Returns:
            GenerationResult with cards and optional title
        """
        session = self.session(
            prompt, count, generate_title=True, sink=on_card, cancel_token=cancel_token
        )
        return await session.run()

    async def generate(
        self,
        prompt: str,
        count: int,
        *,
        on_card: RecordSink | None = None,
        cancel_token: CancelToken | None = None,
    ) -> list[Flashcard]:
        """Generate cards without a title.

        Args:
            prompt: Topic prompt
            count: Number of cards requested
            on_card: Optional per-card sink for incremental delivery
            cancel_token: Token the caller may cancel

        Returns:
            Cards in emission order
        """
        session = self.session(prompt, count, sink=on_card, cancel_token=cancel_token)
        result = await session.run()
        return result.flashcards

    async def stream(
        self,
        prompt: str,
        count: int,
        *,
        generate_title: bool = False,
        cancel_token: CancelToken | None = None,
    ) -> AsyncIterator[tuple[int, Flashcard]]:
        """Stream cards as soon as each one is complete.

        The underlying session is cancelled once the generator is closed:
        explicitly through `aclose()` or `contextlib.aclosing`, otherwise only
        when it is garbage collected. A plain `break` does not close it.

        Yields:
            (index, card) pairs in sequence order

        Raises:
            FlashcardStreamError: When the session fails, after the cards
                emitted before the fault have been yielded
        """
        queue: asyncio.Queue[tuple[int, Flashcard] | None] = asyncio.Queue()

        def sink(card: Flashcard, index: int) -> None:
            queue.put_nowait((index, card))

        session = self.session(
            prompt,
            count,
            generate_title=generate_title,
            sink=sink,
            cancel_token=cancel_token,
        )
        task = asyncio.ensure_future(session.run())
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while True:
                item = await queue.get()
                if item is None:
                    break
                yield item
            await task
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def close(self) -> None:
        """Close the client and release resources."""
        if self._transport is not None:
            await self._transport.close()

    async def __aenter__(self) -> FlashcardClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
