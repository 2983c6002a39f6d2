"""
Chunk source: ordered, cancellable delivery of raw chunks.

Wraps the response body iterator. Each wait for the next chunk is bounded
by the inactivity timeout and races the session's cancel token, so a
stalled backend or a caller cancellation both end the wait promptly.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from typing import TYPE_CHECKING

import httpx

from flashcard_stream.errors import NetworkError, StreamTimeoutError
from flashcard_stream.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from flashcard_stream.client.cancel import CancelToken

logger = get_logger(__name__)


class ChunkSource:
    """Ordered sequence of chunks followed by exactly one end or error signal.

    `next_chunk()` returns the next chunk, or None once the stream has ended.
    After end or error, the source is finished and further calls return None.

    Example:
        >>> source = ChunkSource(response.aiter_bytes(), inactivity_timeout=30.0)
        >>> while (chunk := await source.next_chunk()) is not None:
        ...     process(chunk)
    """

    def __init__(
        self,
        stream: AsyncIterator[bytes],
        *,
        inactivity_timeout: float | None = None,
        cancel_token: CancelToken | None = None,
    ) -> None:
        self._stream = stream
        self._iterator = stream.__aiter__()
        self._inactivity_timeout = inactivity_timeout
        self._cancel_token = cancel_token
        self._finished = False
        self._chunks = 0
        self._bytes = 0

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def chunks_received(self) -> int:
        return self._chunks

    @property
    def bytes_received(self) -> int:
        return self._bytes

    def __aiter__(self) -> ChunkSource:
        return self

    async def __anext__(self) -> bytes:
        chunk = await self.next_chunk()
        if chunk is None:
            raise StopAsyncIteration
        return chunk

    async def next_chunk(self) -> bytes | None:
        """Wait for the next chunk.

        Returns:
            Next chunk, or None at end of stream

        Raises:
            StreamTimeoutError: If no chunk arrived within the inactivity bound
            GenerationCancelledError: If the caller cancelled
            NetworkError: If the transport failed mid-body
        """
        if self._finished:
            return None
        self._raise_if_cancelled()

        pull = asyncio.ensure_future(self._iterator.__anext__())
        waiters: set[asyncio.Future[object]] = {pull}
        cancel_wait: asyncio.Future[object] | None = None
        if self._cancel_token is not None:
            cancel_wait = asyncio.ensure_future(self._cancel_token.wait())
            waiters.add(cancel_wait)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=self._inactivity_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            await self._discard(pull)
            raise
        finally:
            if cancel_wait is not None and not cancel_wait.done():
                cancel_wait.cancel()

        if pull not in done:
            await self._discard(pull)
            self._finished = True
            if cancel_wait is not None and cancel_wait in done:
                self._raise_if_cancelled()
            raise StreamTimeoutError(
                f"No data received for {self._inactivity_timeout}s",
                timeout=self._inactivity_timeout,
            )

        try:
            chunk = pull.result()
        except StopAsyncIteration:
            self._finished = True
            logger.debug("Chunk source exhausted", chunks=self._chunks, bytes=self._bytes)
            return None
        except httpx.ReadTimeout as e:
            self._finished = True
            raise StreamTimeoutError(f"Read timed out: {e}") from e
        except httpx.HTTPError as e:
            self._finished = True
            raise NetworkError(f"Stream interrupted: {e}", cause=e) from e

        self._chunks += 1
        self._bytes += len(chunk)
        return chunk

    async def aclose(self) -> None:
        """Stop requesting chunks and release the underlying iterator."""
        self._finished = True
        close = getattr(self._iterator, "aclose", None)
        if close is not None:
            result = close()
            if inspect.isawaitable(result):
                await result

    def _raise_if_cancelled(self) -> None:
        token = self._cancel_token
        if token is None or not token.is_cancelled:
            return
        self._finished = True
        token.raise_if_cancelled()

    @staticmethod
    async def _discard(pull: asyncio.Future[object]) -> None:
        if pull.done():
            if not pull.cancelled():
                # Retrieve so a late failure is not reported as unhandled
                pull.exception()
            return
        pull.cancel()
        with contextlib.suppress(asyncio.CancelledError, StopAsyncIteration, httpx.HTTPError):
            await pull
