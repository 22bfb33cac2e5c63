"""Bridge stdlib logging into the enrichment pipeline."""

import asyncio
import logging

from log_enricher.errors import SourceClosedError
from log_enricher.source import QueueSource

LINKING_ATTR = "linking_metadata"
PRIORITY_ATTR = "priority"

# Records from this package never re-enter the pipeline.
_INTERNAL_PREFIX = "log_enricher"

_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName", LINKING_ATTR}


def to_record_level(levelno: int) -> int:
    """Map a stdlib level number onto the 10..60 record scale.

    DEBUG=10 becomes 20 ("debug"), CRITICAL=50 becomes 60 ("fatal").
    """
    return levelno + 10


class LinkingMetadataFilter(logging.Filter):
    """Stamps the agent's linking metadata onto every record."""

    def __init__(self, api, name: str = "") -> None:
        super().__init__(name)
        self.api = api

    def filter(self, record: logging.LogRecord) -> bool:
        setattr(record, LINKING_ATTR, self.api.get_linking_metadata())
        return True


def build_raw_record(record: logging.LogRecord) -> dict:
    """Convert a LogRecord into a raw pipeline record."""
    raw = {
        "level": to_record_level(record.levelno),
        "msg": record.getMessage(),
        "time": int(record.created * 1000),
        "logger": record.name,
    }
    for key, value in record.__dict__.items():
        if key not in _STANDARD_ATTRS and key not in raw:
            raw[key] = value
    raw.update(getattr(record, LINKING_ATTR, None) or {})
    if record.exc_info and record.exc_info[1] is not None:
        raw["err"] = record.exc_info[1]
    return raw


class PipelineHandler(logging.Handler):
    """Feeds log records into a QueueSource owned by an event loop.

    Safe to call from any thread; records are handed to the loop with
    ``call_soon_threadsafe``. Records logged after close() are dropped.
    """

    def __init__(self, source: QueueSource, loop: asyncio.AbstractEventLoop, level=logging.NOTSET) -> None:
        super().__init__(level)
        self.source = source
        self.loop = loop
        self.dropped = 0
        self._closed = False

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith(_INTERNAL_PREFIX):
            return
        if self._closed:
            self.dropped += 1
            return
        try:
            raw = build_raw_record(record)
        except Exception:
            self.handleError(record)
            return
        if self._on_loop_thread():
            self._put(raw)
        elif not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self._put, raw)
        else:
            self.dropped += 1

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self.loop
        except RuntimeError:
            return False

    def _put(self, raw: dict) -> None:
        try:
            self.source.put(raw)
        except SourceClosedError:
            self.dropped += 1

    def close(self) -> None:
        """End the source so the pipeline drains and stops.

        The close is queued behind records already handed to the loop.
        """
        if not self._closed:
            self._closed = True
            if not self.loop.is_closed():
                self.loop.call_soon_threadsafe(self.source.close)
        super().close()
