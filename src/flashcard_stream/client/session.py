"""
Generation session: the orchestrator for one flashcard request.

Drives ChunkSource -> FrameDecoder -> RecordExtractor -> Emitter and
classifies the terminal outcome. Each session is single-use:

    Idle -> Validating -> Authenticating -> Streaming -> Completed
                 |               |               |
                 +---------------+---------------+--> Failed

Records already delivered to the sink stay delivered when the session fails.
"""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PayloadValidationError

from flashcard_stream.client.cancel import CancelReason, CancelToken
from flashcard_stream.client.response import SessionStats
from flashcard_stream.config import WireFormat
from flashcard_stream.errors import (
    AuthenticationRequiredError,
    FlashcardStreamError,
    GenerationCancelledError,
    MalformedFrameError,
    NotConfiguredError,
    PreconditionError,
    ValidationError,
)
from flashcard_stream.pipeline import Emitter, Pipeline
from flashcard_stream.pipeline.source import ChunkSource
from flashcard_stream.prompts import build_generation_payload
from flashcard_stream.telemetry import (
    LogContext,
    clear_log_context,
    get_logger,
    set_log_context,
)
from flashcard_stream.types.cards import (
    MAX_TITLE_LENGTH,
    Flashcard,
    GenerationRequest,
    GenerationResult,
    clamp_text,
)
from flashcard_stream.types.frames import TextFragment

if TYPE_CHECKING:
    from collections.abc import Coroutine, Iterator

    from flashcard_stream.config import ClientConfig
    from flashcard_stream.pipeline.base import ExtractedCard
    from flashcard_stream.pipeline.emit import RecordSink
    from flashcard_stream.transport import HttpTransport, Identity, TokenProvider

logger = get_logger(__name__)

_PROMPT_LOG_CHARS = 100


class SessionState(str, Enum):
    """Lifecycle state of a generation session."""

    IDLE = "idle"
    VALIDATING = "validating"
    AUTHENTICATING = "authenticating"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.VALIDATING}),
    SessionState.VALIDATING: frozenset({SessionState.AUTHENTICATING, SessionState.FAILED}),
    SessionState.AUTHENTICATING: frozenset({SessionState.STREAMING, SessionState.FAILED}),
    SessionState.STREAMING: frozenset({SessionState.COMPLETED, SessionState.FAILED}),
    SessionState.COMPLETED: frozenset(),
    SessionState.FAILED: frozenset(),
}


class _FallbackCard(BaseModel):
    question: str
    answer: str


class _FallbackBody(BaseModel):
    """Complete JSON body of the non-streaming endpoint response."""

    flashcards: list[_FallbackCard]
    title: str | None = None


class _ChatMessage(BaseModel):
    content: str | None = None


class _ChatChoice(BaseModel):
    message: _ChatMessage


class _ChatCompletionBody(BaseModel):
    """Non-streaming chat completion carrying flat card text."""

    choices: list[_ChatChoice] = Field(min_length=1)


class GenerationSession:
    """One flashcard generation request, from validation to final result.

    With a sink, cards are streamed and delivered one by one as soon as
    they are complete. Without a sink, a single non-streaming request is
    made and the complete body becomes the result.

    Example:
        >>> session = GenerationSession(
        ...     GenerationRequest(prompt="Photosynthesis", count=5),
        ...     config=config,
        ...     transport=transport,
        ...     identity=Identity(id="user-1"),
        ...     token_provider=StaticTokenProvider(token),
        ...     sink=lambda card, index: print(index, card.question),
        ... )
        >>> result = await session.run()
    """

    def __init__(
        self,
        request: GenerationRequest,
        *,
        config: ClientConfig,
        transport: HttpTransport | None,
        identity: Identity | None,
        token_provider: TokenProvider | None,
        sink: RecordSink | None = None,
        cancel_token: CancelToken | None = None,
    ) -> None:
        self._request = request
        self._config = config
        self._transport = transport
        self._identity = identity
        self._token_provider = token_provider
        self._sink = sink
        self._caller_token = cancel_token

        self._state = SessionState.IDLE
        self._error: FlashcardStreamError | None = None
        self._stats = SessionStats(
            wire_format=config.wire_format.value,
            streaming=sink is not None,
        )
        self._emitter = Emitter(sink)
        self._pipeline = Pipeline.for_format(
            config.wire_format,
            capture_title=request.generate_title,
            max_line_bytes=config.max_line_bytes,
        )
        self._fallback_title: str | None = None

    @property
    def session_id(self) -> str:
        return self._stats.session_id

    @property
    def request(self) -> GenerationRequest:
        return self._request

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> FlashcardStreamError | None:
        """Terminal error, once the session has failed."""
        return self._error

    @property
    def stats(self) -> SessionStats:
        return self._stats

    @property
    def title(self) -> str | None:
        if self._fallback_title is not None:
            return self._fallback_title
        return self._pipeline.title

    @property
    def result(self) -> GenerationResult:
        """Snapshot of the accumulated result.

        After a failure this holds every card delivered before the fault.
        """
        return GenerationResult(
            flashcards=self._emitter.records,
            title=self.title,
            sink_failures=self._emitter.failures,
        )

    async def run(self) -> GenerationResult:
        """Run the session to completion.

        Returns:
            Final ordered result

        Raises:
            ValidationError: Invalid prompt or card count (before any network call)
            AuthenticationRequiredError: No signed-in identity or token
            NotConfiguredError: No endpoint configured
            StreamError: Any terminal fault while streaming
            RuntimeError: If the session was already run
        """
        if self._state is not SessionState.IDLE:
            raise RuntimeError("GenerationSession is single-use")

        set_log_context(
            LogContext(
                session_id=self.session_id,
                wire_format=self._config.wire_format.value,
                endpoint=self._config.endpoint_url,
            )
        )
        self._stats.record_start()
        try:
            self._transition(SessionState.VALIDATING)
            self._validate()

            self._transition(SessionState.AUTHENTICATING)
            transport, token = await self._authenticate()

            self._transition(SessionState.STREAMING)
            logger.debug(
                "Starting generation",
                prompt=self._request.prompt[:_PROMPT_LOG_CHARS],
                count=self._request.count,
                generate_title=self._request.generate_title,
                streaming=self._sink is not None,
            )
            cancel = self._arm_cancel()
            self._emitter = Emitter(self._sink, cancel_token=cancel)
            try:
                if self._sink is None:
                    await self._race(self._run_fallback(transport, token), cancel)
                else:
                    await self._race(self._stream(transport, token, cancel), cancel)
            finally:
                cancel.release()

            self._transition(SessionState.COMPLETED)
            self._finalize_stats("completed")
            logger.info("Generation completed", **self._stats.to_dict())
            return self.result
        except FlashcardStreamError as e:
            self._fail(e)
            raise
        except asyncio.CancelledError:
            self._fail(GenerationCancelledError("Generation task cancelled", reason="task_cancelled"))
            raise
        finally:
            clear_log_context()

    def _transition(self, state: SessionState) -> None:
        if state not in _TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid session transition {self._state.value} -> {state.value}")
        logger.debug("Session state changed", previous=self._state.value, state=state.value)
        self._state = state

    def _fail(self, error: FlashcardStreamError) -> None:
        self._error = error
        if self._state not in (SessionState.COMPLETED, SessionState.FAILED):
            self._transition(SessionState.FAILED)
        self._finalize_stats(type(error).__name__)
        if isinstance(error, PreconditionError):
            logger.warning("Generation rejected", error=error.message, error_type=type(error).__name__)
        else:
            logger.error(
                "Generation failed",
                error=error.message,
                error_type=type(error).__name__,
                **self._stats.to_dict(),
            )

    def _finalize_stats(self, outcome: str) -> None:
        self._stats.records_emitted = len(self._emitter.records)
        self._stats.sink_failures = len(self._emitter.failures)
        self._stats.record_end(outcome)

    def _validate(self) -> None:
        prompt = self._request.prompt
        if not prompt.strip():
            raise ValidationError("Prompt is required", field="prompt")
        if len(prompt) > self._config.max_prompt_length:
            raise ValidationError(
                f"Prompt must be {self._config.max_prompt_length} characters or less",
                field="prompt",
                limit=self._config.max_prompt_length,
                actual=len(prompt),
            )

        count = self._request.count
        limit = self._config.max_cards_per_request
        if not 1 <= count <= limit:
            raise ValidationError(
                f"Card count must be between 1 and {limit}",
                field="count",
                limit=limit,
                actual=count,
            )

    async def _authenticate(self) -> tuple[HttpTransport, str]:
        if self._identity is None:
            raise AuthenticationRequiredError()
        transport = self._transport
        if not self._config.is_configured or transport is None:
            raise NotConfiguredError()
        token = await self._token_provider.get_token() if self._token_provider else None
        if not token:
            raise AuthenticationRequiredError("Session expired, please sign in again")
        return transport, token

    def _arm_cancel(self) -> CancelToken:
        """Token observed while streaming: caller cancellation plus the deadline."""
        cancel = CancelToken(timeout=self._config.session_timeout)
        caller = self._caller_token
        if caller is not None:
            caller.on_cancel(lambda reason: cancel.cancel(reason))
        return cancel

    @staticmethod
    async def _race(work_coro: Coroutine[Any, Any, None], cancel: CancelToken) -> None:
        """Run the request, headers included, until it finishes or the token fires."""
        work = asyncio.ensure_future(work_coro)
        stop = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not stop.done():
                stop.cancel()
            if not work.done():
                work.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await work

        if work.cancelled():
            cancel.raise_if_cancelled()
            raise GenerationCancelledError(reason=CancelReason.USER_REQUEST.value)
        work.result()

    async def _stream(self, transport: HttpTransport, token: str, cancel: CancelToken) -> None:
        wire_format = self._config.wire_format
        payload = build_generation_payload(self._request, self._config, stream=True)

        async with transport.stream_post(
            payload, token=token, accept=wire_format.accept
        ) as response:
            source = ChunkSource(
                response.aiter_bytes(),
                inactivity_timeout=self._config.inactivity_timeout,
                cancel_token=cancel,
            )
            try:
                while True:
                    chunk = await source.next_chunk()
                    if chunk is None:
                        break
                    await self._deliver(self._pipeline.feed(chunk), cancel)
                await self._deliver(self._pipeline.finish(), cancel)
            finally:
                self._stats.chunks_received = source.chunks_received
                self._stats.bytes_received = source.bytes_received
                await source.aclose()

    async def _deliver(self, cards: Iterator[ExtractedCard], cancel: CancelToken) -> None:
        """Emit every card completed by the current chunk before awaiting the next."""
        for card, claimed_index in cards:
            if not await self._emitter.emit(card, claimed_index=claimed_index):
                break
            self._stats.record_first_record()
        cancel.raise_if_cancelled()

    async def _run_fallback(self, transport: HttpTransport, token: str) -> None:
        payload = build_generation_payload(self._request, self._config, stream=False)
        body = await transport.post_json(payload, token=token)

        if self._config.wire_format is WireFormat.CHAT_COMPLETIONS:
            cards, title = self._parse_chat_body(body)
        else:
            cards, title = self._parse_fallback_body(body)

        for card in cards:
            await self._emitter.emit(card)
        if self._request.generate_title:
            self._fallback_title = title
        if cards:
            self._stats.record_first_record()

    @staticmethod
    def _parse_fallback_body(body: dict[str, Any]) -> tuple[list[Flashcard], str | None]:
        try:
            parsed = _FallbackBody.model_validate(body)
        except PayloadValidationError as e:
            raise MalformedFrameError(
                f"Invalid generation response: {e.error_count()} validation error(s)",
                decoder="json",
            ) from e
        cards = [Flashcard.from_raw(item.question, item.answer) for item in parsed.flashcards]
        title = clamp_text(parsed.title, MAX_TITLE_LENGTH) if parsed.title else None
        return cards, title or None

    def _parse_chat_body(self, body: dict[str, Any]) -> tuple[list[Flashcard], str | None]:
        try:
            parsed = _ChatCompletionBody.model_validate(body)
        except PayloadValidationError as e:
            raise MalformedFrameError(
                f"Invalid chat completion response: {e.error_count()} validation error(s)",
                decoder="chat_completions",
            ) from e
        content = parsed.choices[0].message.content or ""
        extractor = self._pipeline.extractor
        cards = [card for card, _ in extractor.process(TextFragment(text=content))]
        extractor.finish()
        return cards, extractor.title
