"""Tests for the emitter."""

import asyncio

import pytest

from flashcard_stream.client import CancelToken
from flashcard_stream.errors import ProtocolViolationError
from flashcard_stream.pipeline import Emitter
from flashcard_stream.types import Flashcard
from tests.support import Collector


def _card(n: int) -> Flashcard:
    return Flashcard(question=f"Q{n}", answer=f"A{n}")


class TestEmitter:
    """Tests for Emitter."""

    @pytest.mark.asyncio
    async def test_sequential_indices(self) -> None:
        """Test indices start at 0 and grow by one."""
        sink = Collector()
        emitter = Emitter(sink)
        for n in range(3):
            assert await emitter.emit(_card(n)) is True

        assert sink.indices == [0, 1, 2]
        assert sink.questions == ["Q0", "Q1", "Q2"]
        assert emitter.records == [_card(0), _card(1), _card(2)]

    @pytest.mark.asyncio
    async def test_async_sink_awaited(self) -> None:
        """Test a coroutine sink is awaited before the next card."""
        seen: list[int] = []

        async def sink(card: Flashcard, index: int) -> None:
            await asyncio.sleep(0)
            seen.append(index)

        emitter = Emitter(sink)
        await emitter.emit(_card(0))
        await emitter.emit(_card(1))
        assert seen == [0, 1]

    @pytest.mark.asyncio
    async def test_sink_failure_isolated(self) -> None:
        """Test a failing sink does not stop delivery of later cards."""
        delivered: list[int] = []

        def sink(card: Flashcard, index: int) -> None:
            if index == 0:
                raise RuntimeError("UI went away")
            delivered.append(index)

        emitter = Emitter(sink)
        await emitter.emit(_card(0))
        await emitter.emit(_card(1))

        assert delivered == [1]
        assert len(emitter.records) == 2
        assert len(emitter.failures) == 1
        assert emitter.failures[0].index == 0
        assert isinstance(emitter.failures[0].error, RuntimeError)

    @pytest.mark.asyncio
    async def test_claimed_index_matches(self) -> None:
        """Test matching claimed indices are accepted."""
        emitter = Emitter()
        await emitter.emit(_card(0), claimed_index=0)
        await emitter.emit(_card(1), claimed_index=1)
        assert emitter.next_index == 2

    @pytest.mark.asyncio
    async def test_claimed_index_mismatch(self) -> None:
        """Test a claimed index out of sequence is a protocol violation."""
        sink = Collector()
        emitter = Emitter(sink)
        await emitter.emit(_card(0), claimed_index=0)

        with pytest.raises(ProtocolViolationError) as exc_info:
            await emitter.emit(_card(2), claimed_index=2)

        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 2
        assert sink.indices == [0]
        assert len(emitter.records) == 1

    @pytest.mark.asyncio
    async def test_suppressed_after_cancel(self) -> None:
        """Test nothing is delivered once the token is cancelled."""
        sink = Collector()
        token = CancelToken()
        emitter = Emitter(sink, cancel_token=token)
        await emitter.emit(_card(0))
        token.cancel()

        assert await emitter.emit(_card(1)) is False
        assert emitter.suppressed is True
        assert sink.indices == [0]
        assert emitter.records == [_card(0)]

    @pytest.mark.asyncio
    async def test_without_sink(self) -> None:
        """Test cards accumulate without a sink."""
        emitter = Emitter()
        await emitter.emit(_card(0))
        assert emitter.records == [_card(0)]
        assert emitter.failures == []
