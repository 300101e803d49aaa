"""Output channel — bounded conduit of cumulative completion snapshots."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from pydantic import BaseModel


class CompletionChunk(BaseModel):
    """Everything produced so far for one chat (cumulative, not incremental)."""

    chat_id: str
    user_id: str
    content: str


_CLOSED = object()


class OutputChannel:
    """Single-producer channel backed by a bounded :class:`asyncio.Queue`.

    ``publish`` blocks while the queue is full, so a slow consumer applies
    backpressure to the producer. Iterating the channel yields chunks until
    :meth:`close` is called.
    """

    def __init__(self, maxsize: int = 64) -> None:
        if maxsize <= 0:
            msg = "maxsize must be positive"
            raise ValueError(msg)
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def publish(self, chunk: CompletionChunk) -> None:
        if self._closed:
            msg = "channel is closed"
            raise RuntimeError(msg)
        await self._queue.put(chunk)

    async def close(self) -> None:
        """Signal end-of-stream to the consumer. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_CLOSED)

    def drain(self) -> list[CompletionChunk]:
        """Pop every chunk currently queued without waiting."""
        chunks: list[CompletionChunk] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                continue
            chunks.append(item)  # type: ignore[arg-type]
        return chunks

    async def __aiter__(self) -> AsyncIterator[CompletionChunk]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]
