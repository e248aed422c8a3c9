"""Unit tests for the progress channel and cancellation token."""

from __future__ import annotations

import asyncio

import pytest

from reader_service.ingestion.progress import CancellationToken, ProgressChannel


async def _drain(channel: ProgressChannel) -> list[float]:
    return [v async for v in channel]


class TestProgressChannel:
    async def test_values_then_close(self):
        channel = ProgressChannel()
        channel.emit(0.5)
        channel.emit(1.0)
        assert channel.close() is True
        assert await _drain(channel) == [0.5, 1.0]

    async def test_close_is_idempotent(self):
        channel = ProgressChannel()
        assert channel.close() is True
        assert channel.close() is False
        assert channel.closed

    async def test_emit_after_close_raises(self):
        channel = ProgressChannel()
        channel.close()
        with pytest.raises(RuntimeError):
            channel.emit(0.1)

    async def test_decreasing_value_rejected(self):
        channel = ProgressChannel()
        channel.emit(0.6)
        with pytest.raises(ValueError, match="non-decreasing"):
            channel.emit(0.3)

    async def test_iteration_after_close_terminates_again(self):
        channel = ProgressChannel()
        channel.close()
        assert await _drain(channel) == []
        assert await _drain(channel) == []

    async def test_consumer_waits_for_values(self):
        channel = ProgressChannel()
        consumer = asyncio.create_task(_drain(channel))
        await asyncio.sleep(0)
        channel.emit(0.25)
        await asyncio.sleep(0)
        channel.close()
        assert await asyncio.wait_for(consumer, 1) == [0.25]


class TestCancellationToken:
    def test_not_cancelled_by_default(self):
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_raise_after_cancel(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(asyncio.CancelledError):
            token.raise_if_cancelled()
