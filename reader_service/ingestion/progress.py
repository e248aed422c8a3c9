"""Per-run progress channel and cancellation token for extraction jobs.

The channel is written by the extraction coroutine and read by a single
consumer (the orchestrator's relay task). Both sides live on the event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

_CLOSED = object()


class ProgressChannel:
    """Async iterator of progress fractions in ``(0, 1]`` that closes exactly once."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self._last = 0.0

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, value: float) -> None:
        if self._closed:
            raise RuntimeError("progress emitted on a closed channel")
        if value < self._last:
            raise ValueError(f"progress must be non-decreasing ({value} < {self._last})")
        self._last = value
        self._queue.put_nowait(value)

    def close(self) -> bool:
        """Close the channel; returns False if it was already closed."""
        if self._closed:
            return False
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        return True

    def __aiter__(self) -> AsyncIterator[float]:
        return self

    async def __anext__(self) -> float:
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker in place so later iterations also terminate.
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item  # type: ignore[return-value]


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise asyncio.CancelledError("extraction cancelled")


@dataclass
class ExtractionJob:
    """A running extraction: the task yielding the text plus its progress channel."""

    task: asyncio.Task[str]
    progress: ProgressChannel
    token: CancellationToken = field(default_factory=CancellationToken)

    def cancel(self) -> None:
        self.token.cancel()
        self.task.cancel()

    async def result(self) -> str:
        return await self.task
