"""Closable async record queue feeding the enrichment pipeline."""

import asyncio

from log_enricher.errors import SourceClosedError

_END = object()


class QueueSource:
    """Async iterable of raw records.

    ``put()`` accepts records until ``close()`` is called; iteration yields
    everything accepted before the close and then stops.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self.accepted = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, record: dict) -> None:
        if self._closed:
            raise SourceClosedError("Source is closed")
        self._queue.put_nowait(record)
        self.accepted += 1

    def close(self) -> None:
        """Mark end-of-stream. Records already queued are still delivered."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_END)

    def __aiter__(self):
        return self

    async def __anext__(self) -> dict:
        item = await self._queue.get()
        if item is _END:
            # Leave the marker for any other consumer.
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        return item
