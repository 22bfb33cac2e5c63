"""Hand trace-linked records to the agent's in-memory log aggregator."""

import logging

logger = logging.getLogger(__name__)

TRACE_ID_KEY = "trace.id"


def maybe_forward(record: dict, priority, collector) -> bool:
    """Add *record* to *collector* when it carries a trace id.

    Returns True if the collector was called. Collector failures are logged
    and never propagate.
    """
    if collector is None or not record.get(TRACE_ID_KEY):
        return False
    try:
        collector.add(record, priority)
    except Exception:
        logger.warning("Log aggregator rejected record", exc_info=True)
    return True
