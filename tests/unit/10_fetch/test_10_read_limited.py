"""Tests for size-bounded stream consumption."""

import pytest

from stn_notifier.errors import ActualSizeExceededError, DeclaredSizeExceededError
from stn_notifier.fetch.limits import SizeBudget, read_limited


class ChunkSource:
    """Async chunk iterator that records how far it was consumed."""

    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.delivered = 0

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            self.delivered += 1
            yield chunk


class TestSizeBudget:
    def test_declared_within_limit(self):
        budget = SizeBudget(limit=100, declared=100)
        budget.check_declared()
        assert not budget.aborted

    def test_declared_over_limit(self):
        budget = SizeBudget(limit=100, declared=101)

        with pytest.raises(DeclaredSizeExceededError):
            budget.check_declared()
        assert budget.aborted

    def test_accept_tracks_consumed(self):
        budget = SizeBudget(limit=10)
        budget.accept(4)
        budget.accept(6)
        assert budget.consumed == 10

    def test_accept_overflow(self):
        budget = SizeBudget(limit=10)
        budget.accept(8)

        with pytest.raises(ActualSizeExceededError) as exc_info:
            budget.accept(3)

        assert exc_info.value.size == 11
        assert budget.consumed == 8
        assert budget.aborted


class TestReadLimited:
    """Tests for read_limited()."""

    @pytest.mark.asyncio
    async def test_declared_size_rejected_before_reading(self):
        """A declared length over the limit fails without pulling any chunk."""
        source = ChunkSource([b"x" * 10])

        with pytest.raises(DeclaredSizeExceededError) as exc_info:
            await read_limited(source, limit=1_000_000, declared_size=2_000_000)

        assert source.delivered == 0
        assert exc_info.value.size == 2_000_000
        assert exc_info.value.limit == 1_000_000

    @pytest.mark.asyncio
    async def test_unknown_length_within_limit(self):
        chunks = [b"a" * 100_000] * 5
        body = await read_limited(ChunkSource(chunks), limit=1_000_000)

        assert len(body) == 500_000
        assert body == b"a" * 500_000

    @pytest.mark.asyncio
    async def test_aborts_on_the_overflowing_chunk(self):
        """Consumption stops at the chunk that crosses the limit."""
        source = ChunkSource([b"x" * 40] * 10)

        with pytest.raises(ActualSizeExceededError) as exc_info:
            await read_limited(source, limit=100)

        assert source.delivered == 3
        assert exc_info.value.size == 120

    @pytest.mark.asyncio
    async def test_lying_declared_size_is_still_enforced(self):
        """A small declared size does not let a larger body through."""
        source = ChunkSource([b"x" * 60, b"y" * 60])

        with pytest.raises(ActualSizeExceededError):
            await read_limited(source, limit=100, declared_size=50)

    @pytest.mark.asyncio
    async def test_declared_larger_than_actual_is_trimmed(self):
        body = await read_limited(ChunkSource([b"abc", b"de"]), limit=100, declared_size=50)
        assert body == b"abcde"

    @pytest.mark.asyncio
    async def test_exactly_at_limit(self):
        body = await read_limited(ChunkSource([b"x" * 50, b"y" * 50]), limit=100, declared_size=100)
        assert body == b"x" * 50 + b"y" * 50

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        assert await read_limited(ChunkSource([]), limit=10) == b""

    @pytest.mark.asyncio
    async def test_zero_declared_means_unknown(self):
        body = await read_limited(ChunkSource([b"abc"]), limit=10, declared_size=0)
        assert body == b"abc"
