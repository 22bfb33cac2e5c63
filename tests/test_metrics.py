"""Tests for the log line metrics hook."""

from unittest.mock import MagicMock

from log_enricher.agent import Agent, MetricRegistry
from log_enricher.metrics import (
    LINES_METRIC,
    MODULE_USAGE_METRICS,
    MetricsHook,
    metrics_enabled,
    record_emission,
    record_module_usage,
)


def test_counts_total_and_per_level(make_settings):
    registry = MetricRegistry()
    record_emission(make_settings(), "info", registry)
    record_emission(make_settings(), "info", registry)
    record_emission(make_settings(), "error", registry)
    counts = registry.get_all()
    assert counts[LINES_METRIC] == 3
    assert counts["Logging/lines/info"] == 2
    assert counts["Logging/lines/error"] == 1


def test_numeric_level_label(make_settings):
    registry = MetricRegistry()
    record_emission(make_settings(), 35, registry)
    assert registry.get_all()["Logging/lines/35"] == 1


def test_disabled_application_logging(make_settings):
    registry = MetricRegistry()
    record_emission(make_settings(enabled=False), "info", registry)
    assert registry.get_all() == {}


def test_disabled_metrics(make_settings):
    registry = MetricRegistry()
    record_emission(make_settings(metrics=False), "info", registry)
    assert registry.get_all() == {}


def test_missing_config_sections():
    assert metrics_enabled(None) is False
    assert metrics_enabled({}) is False
    assert metrics_enabled({"application_logging": {"enabled": True}}) is False


def test_backend_failure_swallowed(make_settings):
    metrics = MagicMock()
    metrics.get_or_create_metric.side_effect = RuntimeError("backend down")
    record_emission(make_settings(), "info", metrics)
    metrics.get_or_create_metric.assert_called_once_with(LINES_METRIC)


def test_module_usage_metrics():
    registry = MetricRegistry()
    record_module_usage(registry)
    counts = registry.get_all()
    for name in MODULE_USAGE_METRICS:
        assert counts[name] == 1


def test_hook_reads_live_config(make_settings):
    agent = Agent(make_settings())
    hook = MetricsHook(agent)
    hook("warn")
    agent.config["application_logging"]["enabled"] = False
    hook("warn")
    assert agent.metrics.get_all()["Logging/lines/warn"] == 1
