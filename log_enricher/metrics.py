"""Usage counters driven by the agent's application_logging settings."""

import logging

logger = logging.getLogger(__name__)

LINES_METRIC = "Logging/lines"
MODULE_USAGE_METRICS = (
    "Supportability/ExternalModules/LogEnricher",
    "Supportability/Logging/Python/logging/enabled",
)


def metrics_enabled(config) -> bool:
    """True when both application_logging and its metrics are switched on."""
    if not config:
        return False
    section = config.get("application_logging")
    if not section or not section.get("enabled"):
        return False
    metrics = section.get("metrics") or {}
    return bool(metrics.get("enabled"))


def record_emission(config, label, metrics) -> None:
    """Count one emitted line in total and under its level *label*."""
    try:
        if not metrics_enabled(config):
            return
        metrics.get_or_create_metric(LINES_METRIC).increment_call_count()
        metrics.get_or_create_metric(f"{LINES_METRIC}/{label}").increment_call_count()
    except Exception:
        logger.debug("Failed to record log line metrics", exc_info=True)


def record_module_usage(metrics) -> None:
    for name in MODULE_USAGE_METRICS:
        metrics.get_or_create_metric(name).increment_call_count()


class MetricsHook:
    """Binds record_emission to an agent, reading its config on every call."""

    def __init__(self, agent) -> None:
        self._agent = agent

    def __call__(self, label) -> None:
        record_emission(
            getattr(self._agent, "config", None),
            label,
            getattr(self._agent, "metrics", None),
        )
