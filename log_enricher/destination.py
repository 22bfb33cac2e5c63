"""Non-blocking append sink for NDJSON output."""

import asyncio
import logging
import os

import aiofiles

from log_enricher.errors import DestinationError

logger = logging.getLogger(__name__)

STDOUT_FD = 1
# Descriptors the sink writes to but never closes.
_SHARED_FDS = (1, 2)


class _StreamFile:
    """Async facade over a caller-owned text stream.

    The stream is flushed on close but left open for its owner.
    """

    def __init__(self, stream) -> None:
        self._stream = stream

    async def write(self, data: str) -> None:
        await asyncio.to_thread(self._stream.write, data)

    async def flush(self) -> None:
        flush = getattr(self._stream, "flush", None)
        if flush is not None:
            await asyncio.to_thread(flush)

    async def close(self) -> None:
        await self.flush()


class DestinationSink:
    """Buffered append-only writer owned by a single pipeline.

    ``write()`` only enqueues; a background task drains the buffer to the
    target in FIFO order. The sink is usable once ``open()`` has completed
    and is finished once ``close()`` returns.
    """

    def __init__(self, target=STDOUT_FD) -> None:
        self.target = target
        self._queue: asyncio.Queue = asyncio.Queue()
        self._ready = asyncio.Event()
        self._closed = asyncio.Event()
        self._file = None
        self._writer_task: asyncio.Task | None = None
        self._close_task: asyncio.Future | None = None
        self._error: BaseException | None = None
        self._closing = False
        self.lines_written = 0

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def failed(self) -> bool:
        return self._error is not None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def open(self) -> "DestinationSink":
        if self.ready:
            return self
        try:
            self._file = await self._open_target()
        except OSError as exc:
            raise DestinationError(f"Cannot open destination {self.target!r}: {exc}") from exc
        self._writer_task = asyncio.create_task(self._drain())
        self._ready.set()
        logger.debug("Destination %r ready", self.target)
        return self

    async def wait_ready(self) -> None:
        await self._ready.wait()

    async def _open_target(self):
        target = self.target
        if isinstance(target, bool):
            raise DestinationError(f"Invalid destination {target!r}")
        if isinstance(target, int):
            return await aiofiles.open(
                target, mode="w", encoding="utf-8",
                closefd=target not in _SHARED_FDS,
            )
        if isinstance(target, (str, os.PathLike)):
            parent = os.path.dirname(os.fspath(target))
            if parent:
                os.makedirs(parent, exist_ok=True)
            return await aiofiles.open(target, mode="a", encoding="utf-8")
        if hasattr(target, "write"):
            return _StreamFile(target)
        raise DestinationError(f"Unsupported destination {target!r}")

    def write(self, line: str) -> None:
        """Queue *line* plus a newline for writing."""
        if self._error is not None:
            raise DestinationError(f"Destination failed: {self._error}") from self._error
        if self._closing or not self.ready:
            raise DestinationError("Destination is not accepting writes")
        self._queue.put_nowait(line + "\n")

    async def _drain(self) -> None:
        """Write queued chunks until the close sentinel or an I/O error."""
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            parts = [chunk]
            done = False
            # Coalesce whatever else is already buffered into one write.
            while not self._queue.empty():
                nxt = self._queue.get_nowait()
                if nxt is None:
                    done = True
                    break
                parts.append(nxt)
            try:
                await self._file.write("".join(parts))
                await self._file.flush()
            except Exception as exc:
                # Closed streams raise ValueError, full disks OSError.
                self._error = exc
                logger.error("Write to destination %r failed: %s", self.target, exc)
                return
            self.lines_written += len(parts)
            if done:
                return

    async def close(self) -> None:
        """Flush, close the target and wait for confirmation.

        Raises DestinationError if any write or the close itself failed.
        Safe to call more than once.
        """
        if self._close_task is None:
            self._close_task = asyncio.ensure_future(self._close())
        await self._close_task

    async def _close(self) -> None:
        self._closing = True
        try:
            if self._writer_task is not None:
                self._queue.put_nowait(None)
                await self._writer_task
            if self._file is not None:
                try:
                    await self._file.close()
                except Exception as exc:
                    if self._error is None:
                        self._error = exc
        finally:
            self._closed.set()
        if self._error is not None:
            raise DestinationError(f"Destination failed: {self._error}") from self._error
        logger.debug("Destination %r closed after %d lines", self.target, self.lines_written)


async def open_destination(target=STDOUT_FD) -> DestinationSink:
    """Create a sink for *target* and wait until it is ready."""
    sink = DestinationSink(target)
    await sink.open()
    return sink
