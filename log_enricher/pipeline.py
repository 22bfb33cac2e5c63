"""Async enrichment pipeline: normalize, count, forward and write records."""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, Optional

from log_enricher.config import EnricherConfig
from log_enricher.destination import DestinationSink, open_destination
from log_enricher.errors import DestinationError, PipelineClosedError
from log_enricher.forwarder import maybe_forward
from log_enricher.metrics import MetricsHook, record_module_usage
from log_enricher.normalizer import normalize

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    CLOSED = "closed"


def serialize(record: dict) -> str:
    return json.dumps(record, separators=(",", ":"), default=str)


class EnrichmentPipeline:
    """Single-consumer pipeline writing enriched records to one sink.

    - IDLE: sink is ready, nothing pulled yet.
    - RUNNING: records are pulled one at a time and fully processed
      (normalize, metrics hook, forward, write) before the next pull.
    - DRAINING: end-of-stream or close requested; the sink is being closed.
    - CLOSED: the sink has confirmed close. Final.
    """

    def __init__(self, sink: DestinationSink, metrics_hook=None, collector=None, now=None) -> None:
        self.sink = sink
        self.metrics_hook = metrics_hook
        self.collector = collector
        self._now = now

        self.state = PipelineState.IDLE
        # Lines handed to the sink; `written` counts those it confirmed.
        self.queued = 0
        self.skipped = 0
        self.forwarded = 0
        self._close_requested = asyncio.Event()
        self._finished = asyncio.Event()
        self._running = False
        self._shutdown_task: asyncio.Future | None = None

    @property
    def closed(self) -> bool:
        return self.state == PipelineState.CLOSED

    @property
    def written(self) -> int:
        return self.sink.lines_written

    async def run(self, source: AsyncIterable[dict]) -> None:
        """Consume *source* until it ends or close() is requested."""
        if self.state != PipelineState.IDLE or self._running:
            raise PipelineClosedError(f"Pipeline cannot run from state {self.state.value}")
        self._running = True
        self.state = PipelineState.RUNNING
        try:
            await self._consume(source)
        finally:
            self._finished.set()
            await self._shutdown()

    async def _consume(self, source: AsyncIterable[dict]) -> None:
        iterator = source.__aiter__()
        stop = asyncio.ensure_future(self._close_requested.wait())
        try:
            while not self._close_requested.is_set():
                pull = asyncio.ensure_future(iterator.__anext__())
                await asyncio.wait({pull, stop}, return_when=asyncio.FIRST_COMPLETED)
                if not pull.done():
                    # Close requested while waiting; nothing was pulled.
                    pull.cancel()
                    await asyncio.gather(pull, return_exceptions=True)
                    break
                try:
                    raw = pull.result()
                except StopAsyncIteration:
                    break
                self.process(raw)
        finally:
            stop.cancel()

    def process(self, raw) -> Optional[dict]:
        """Run one record through every stage; returns the queued record.

        Failures before the write are logged and skip the record.
        Destination failures propagate.
        """
        try:
            priority = raw.get("priority")
            record = normalize(raw, self._now)
        except Exception as exc:
            self.skipped += 1
            logger.warning("Dropping malformed log record: %s", exc)
            return None

        if self.metrics_hook is not None:
            try:
                self.metrics_hook(record.get("level"))
            except Exception:
                logger.warning("Metrics hook failed", exc_info=True)
        if maybe_forward(record, priority, self.collector):
            self.forwarded += 1

        try:
            line = serialize(record)
        except (TypeError, ValueError) as exc:
            self.skipped += 1
            logger.warning("Dropping unserializable log record: %s", exc)
            return None

        self.sink.write(line)
        self.queued += 1
        return record

    async def close(self) -> None:
        """Stop pulling, finish the in-flight record and close the sink."""
        self._close_requested.set()
        if self._running:
            await self._finished.wait()
        await self._shutdown()

    async def _shutdown(self) -> None:
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(self._close_sink())
        await self._shutdown_task

    async def _close_sink(self) -> None:
        self.state = PipelineState.DRAINING
        try:
            await self.sink.close()
        except DestinationError:
            logger.error(
                "Pipeline closed with destination failure: queued=%d written=%d",
                self.queued, self.written,
            )
            raise
        finally:
            self.state = PipelineState.CLOSED
        logger.debug(
            "Pipeline closed: written=%d forwarded=%d skipped=%d",
            self.written, self.forwarded, self.skipped,
        )


@dataclass(frozen=True)
class Formatter:
    """Result of create_formatter(): active with a pipeline, or inactive."""

    pipeline: Optional[EnrichmentPipeline] = None

    @property
    def active(self) -> bool:
        return self.pipeline is not None

    def options(self) -> dict:
        if self.pipeline is None:
            return {}
        return {"transport": self.pipeline}


INACTIVE = Formatter()


async def create_formatter(api, config: Optional[EnricherConfig] = None, now=None) -> Formatter:
    """Build the enrichment pipeline for *api*, or INACTIVE for a stub agent."""
    if getattr(api, "shim", None) is None:
        logger.info("Agent not enabled, leaving log formatting unchanged")
        return INACTIVE

    config = config or EnricherConfig()
    agent = api.shim.agent
    record_module_usage(agent.metrics)

    sink = await open_destination(config.destination)
    collector = getattr(api.agent, "logs", None) if config.forwarding_enabled else None
    pipeline = EnrichmentPipeline(sink, MetricsHook(agent), collector, now=now)
    return Formatter(pipeline)
