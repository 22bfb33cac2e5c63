#!/usr/bin/env python3
"""Log Enricher entry point.

Reads raw NDJSON log records (``level``/``msg``/``time``/``err``...) from
stdin or a file, enriches them and appends them to the destination.
With ``--demo`` it instead routes a few stdlib log calls through the
logging bridge.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys

import aiofiles

from log_enricher.agent import AgentApi
from log_enricher.config import load_config, load_yaml_config
from log_enricher.errors import EnricherError
from log_enricher.handler import LinkingMetadataFilter, PipelineHandler
from log_enricher.pipeline import create_formatter
from log_enricher.source import QueueSource

logger = logging.getLogger("log_enricher.main")

STDIN_FD = 0


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Log Enricher")
    parser.add_argument(
        "--input", default=None,
        help="NDJSON file of raw records (default: stdin)",
    )
    parser.add_argument(
        "--destination", default=None,
        help="Output file path or descriptor number (default: 1)",
    )
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument("--app-name", default=None, help="Entity name for linking metadata")
    parser.add_argument("--log-level", default=None, help="Level for diagnostics on stderr")
    parser.add_argument(
        "--demo", action="store_true",
        help="Emit sample records through the logging bridge",
    )
    return parser


async def read_records(path=None):
    """Yield one dict per valid NDJSON line."""
    target = path if path is not None else STDIN_FD
    async with aiofiles.open(target, mode="r", encoding="utf-8", closefd=path is not None) as f:
        async for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping invalid JSON line: %.80s", line)
                continue
            if not isinstance(record, dict):
                logger.warning("Skipping non-object record: %.80s", line)
                continue
            yield record


async def run_demo(api, pipeline) -> None:
    source = QueueSource()
    handler = PipelineHandler(source, asyncio.get_running_loop())
    handler.addFilter(LinkingMetadataFilter(api))
    app_logger = logging.getLogger("demo")
    app_logger.propagate = False
    app_logger.setLevel(logging.DEBUG)
    app_logger.addHandler(handler)

    task = asyncio.create_task(pipeline.run(source))
    app_logger.info("out of trace")
    with api.start_trace("demo"):
        app_logger.info("in trace", extra={"priority": 1.0})
        try:
            raise ValueError("demo failure")
        except ValueError:
            app_logger.exception("handled error")
    app_logger.removeHandler(handler)
    handler.close()
    await task


async def main_async(args) -> int:
    yaml_data = load_yaml_config(args.config)
    config = load_config(args, yaml_data)
    logging.getLogger().setLevel(config.log_level)

    api = AgentApi.from_config(config)
    formatter = await create_formatter(api, config)
    if not formatter.active:
        logger.info("Agent disabled, nothing to enrich")
        return 0

    pipeline = formatter.pipeline
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: asyncio.ensure_future(pipeline.close()))

    if args.demo:
        await run_demo(api, pipeline)
    else:
        await pipeline.run(read_records(args.input))

    logger.info(
        "Stats: %d records written, %d forwarded, %d skipped",
        pipeline.written, pipeline.forwarded, pipeline.skipped,
    )
    return 0


def main() -> int:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [ENRICHER] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    args = build_cli_parser().parse_args()
    try:
        return asyncio.run(main_async(args))
    except EnricherError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
