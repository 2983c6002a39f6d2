"""Tests for the chunk source."""

import asyncio

import httpx
import pytest

from flashcard_stream.client import CancelReason, CancelToken
from flashcard_stream.errors import (
    GenerationCancelledError,
    NetworkError,
    StreamTimeoutError,
)
from flashcard_stream.pipeline import ChunkSource
from tests.support import Delay, ScriptedResponse


def _source(script, **kwargs) -> ChunkSource:
    return ChunkSource(ScriptedResponse(script).aiter_bytes(), **kwargs)


class TestChunkSource:
    """Tests for ChunkSource."""

    @pytest.mark.asyncio
    async def test_chunks_in_order_then_end(self) -> None:
        """Test chunks arrive in order and end is signalled once."""
        source = _source([b"a", b"bc"])
        assert await source.next_chunk() == b"a"
        assert await source.next_chunk() == b"bc"
        assert await source.next_chunk() is None
        assert source.finished is True
        assert await source.next_chunk() is None
        assert source.chunks_received == 2
        assert source.bytes_received == 3

    @pytest.mark.asyncio
    async def test_async_iteration(self) -> None:
        """Test the source is an async iterator."""
        chunks = [chunk async for chunk in _source([b"x", b"y"])]
        assert chunks == [b"x", b"y"]

    @pytest.mark.asyncio
    async def test_inactivity_timeout(self) -> None:
        """Test a stalled stream fails with a timeout."""
        source = _source([b"a", Delay(5.0), b"b"], inactivity_timeout=0.05)
        assert await source.next_chunk() == b"a"
        with pytest.raises(StreamTimeoutError):
            await source.next_chunk()
        assert await source.next_chunk() is None

    @pytest.mark.asyncio
    async def test_no_timeout_when_data_flows(self) -> None:
        """Test short gaps below the bound are fine."""
        source = _source([b"a", Delay(0.01), b"b"], inactivity_timeout=1.0)
        assert [chunk async for chunk in source] == [b"a", b"b"]

    @pytest.mark.asyncio
    async def test_cancel_while_waiting(self) -> None:
        """Test cancellation ends a pending wait."""
        token = CancelToken()
        source = _source([b"a", Delay(5.0), b"b"], cancel_token=token)
        assert await source.next_chunk() == b"a"

        asyncio.get_running_loop().call_later(0.02, token.cancel)
        with pytest.raises(GenerationCancelledError):
            await source.next_chunk()
        assert source.finished is True

    @pytest.mark.asyncio
    async def test_cancelled_before_pull(self) -> None:
        """Test an already cancelled token stops the source immediately."""
        token = CancelToken()
        token.cancel()
        source = _source([b"a"], cancel_token=token)
        with pytest.raises(GenerationCancelledError):
            await source.next_chunk()

    @pytest.mark.asyncio
    async def test_deadline_is_timeout(self) -> None:
        """Test a token cancelled by its deadline maps to a timeout."""
        token = CancelToken()
        token.cancel(CancelReason.TIMEOUT)
        source = _source([b"a"], cancel_token=token)
        with pytest.raises(StreamTimeoutError):
            await source.next_chunk()

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        """Test a mid-body transport failure is a network error, signalled once."""
        source = _source([b"a", httpx.ReadError("connection reset")])
        assert await source.next_chunk() == b"a"
        with pytest.raises(NetworkError):
            await source.next_chunk()
        assert await source.next_chunk() is None

    @pytest.mark.asyncio
    async def test_read_timeout(self) -> None:
        """Test an httpx read timeout maps to a timeout."""
        source = _source([httpx.ReadTimeout("read timed out")])
        with pytest.raises(StreamTimeoutError):
            await source.next_chunk()

    @pytest.mark.asyncio
    async def test_aclose(self) -> None:
        """Test closing stops further chunks."""
        source = _source([b"a", b"b"])
        assert await source.next_chunk() == b"a"
        await source.aclose()
        assert await source.next_chunk() is None
