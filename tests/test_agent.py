"""Tests for the in-process agent collaborators."""

import threading

from log_enricher.agent import Agent, AgentApi, LogAggregator, MetricRegistry
from log_enricher.config import EnricherConfig


def test_registry_returns_same_metric():
    registry = MetricRegistry()
    assert registry.get_or_create_metric("a") is registry.get_or_create_metric("a")


def test_metric_increments_from_threads():
    registry = MetricRegistry()

    def bump():
        for _ in range(1000):
            registry.get_or_create_metric("Logging/lines").increment_call_count()

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert registry.get_all()["Logging/lines"] == 4000


def test_aggregator_keeps_highest_priority():
    agg = LogAggregator(max_samples=2)
    agg.add({"m": "low"}, 0.1)
    agg.add({"m": "high"}, 0.9)
    agg.add({"m": "mid"}, 0.5)
    assert agg.seen == 3
    assert [r["m"] for r in agg.drain()] == ["high", "mid"]
    assert len(agg) == 0


def test_aggregator_assigns_priority_when_missing():
    agg = LogAggregator(max_samples=5)
    agg.add({"m": "x"})
    assert len(agg) == 1


def test_aggregator_zero_capacity():
    agg = LogAggregator(max_samples=0)
    agg.add({"m": "x"}, 1.0)
    assert agg.seen == 1
    assert len(agg) == 0


def test_agent_forwarding_disabled_has_no_aggregator():
    settings = EnricherConfig(forwarding_enabled=False).agent_settings()
    assert Agent(settings).logs is None


def test_agent_applications_from_string():
    agent = Agent({"app_name": "checkout; billing"})
    assert agent.applications() == ["checkout", "billing"]


def test_stub_api_has_no_shim():
    api = AgentApi(None)
    assert api.shim is None
    assert api.get_linking_metadata() == {}


def test_from_config_stub_when_agent_disabled():
    assert AgentApi.from_config(EnricherConfig(agent_enabled=False)).shim is None
    live = AgentApi.from_config(EnricherConfig(app_name="svc"))
    assert live.shim.agent is live.agent
    assert live.get_linking_metadata()["entity.name"] == "svc"


def test_trace_scope_resets(make_settings):
    api = AgentApi(Agent(make_settings()))
    with api.start_trace("outer") as outer:
        with api.start_trace("inner") as inner:
            assert api.current_trace() is inner
        assert api.current_trace() is outer
    assert api.current_trace() is None
    assert "trace.id" not in api.get_linking_metadata()
