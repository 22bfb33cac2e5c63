"""Shared pytest fixtures for the log enricher test suite."""

import io

import pytest

from log_enricher.agent import Agent, AgentApi
from log_enricher.config import EnricherConfig


class RecordingCollector:
    """Stands in for the agent's log aggregator."""

    def __init__(self):
        self.calls: list[tuple[dict, object]] = []

    def add(self, record, priority=None):
        self.calls.append((record, priority))


class FailingStream(io.StringIO):
    """Text stream whose writes fail after *ok_writes* successful ones."""

    def __init__(self, ok_writes: int = 0):
        super().__init__()
        self._ok_writes = ok_writes

    def write(self, data):
        if self._ok_writes <= 0:
            raise OSError(28, "No space left on device")
        self._ok_writes -= 1
        return super().write(data)


def _agent_settings(enabled: bool = True, metrics: bool = True) -> dict:
    return EnricherConfig(
        app_name="test-app",
        application_logging_enabled=enabled,
        metrics_enabled=metrics,
    ).agent_settings()


@pytest.fixture()
def api() -> AgentApi:
    """Live agent with application logging and metrics enabled."""
    return AgentApi(Agent(_agent_settings()))


@pytest.fixture()
def make_settings():
    """Factory for agent settings dicts: make_settings(enabled=..., metrics=...)."""
    return _agent_settings


@pytest.fixture()
def failing_stream():
    """The FailingStream class; call it with the number of writes to allow."""
    return FailingStream


@pytest.fixture()
def stub_api() -> AgentApi:
    return AgentApi(None)


@pytest.fixture()
def collector() -> RecordingCollector:
    return RecordingCollector()


@pytest.fixture()
def fixed_now():
    return lambda: 1700000000000
