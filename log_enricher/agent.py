"""In-process tracing agent: config, usage metrics, log aggregation and linking metadata."""

import contextvars
import heapq
import itertools
import random
import socket
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass

ENTITY_TYPE = "SERVICE"

_current_trace: contextvars.ContextVar = contextvars.ContextVar("log_enricher_trace", default=None)


class Metric:
    """Thread-safe call counter."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self.call_count = 0

    def increment_call_count(self, amount: int = 1) -> None:
        with self._lock:
            self.call_count += amount


class MetricRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics: dict[str, Metric] = {}

    def get_or_create_metric(self, name: str) -> Metric:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = Metric(name)
            return metric

    def get_all(self) -> dict:
        with self._lock:
            return {name: m.call_count for name, m in self._metrics.items()}


class LogAggregator:
    """Bounded in-memory store of log records awaiting delivery.

    When full, the record with the lowest priority is evicted.
    """

    def __init__(self, max_samples: int = 10000) -> None:
        self.max_samples = max_samples
        self._lock = threading.Lock()
        self._heap: list[tuple[float, int, dict]] = []
        self._counter = itertools.count()
        self.seen = 0

    def add(self, record: dict, priority=None) -> None:
        if priority is None:
            priority = random.random()
        entry = (float(priority), next(self._counter), record)
        with self._lock:
            self.seen += 1
            if self.max_samples <= 0:
                return
            if len(self._heap) < self.max_samples:
                heapq.heappush(self._heap, entry)
            elif entry[0] > self._heap[0][0]:
                heapq.heapreplace(self._heap, entry)

    def __len__(self) -> int:
        with self._lock:
            return len(self._heap)

    def drain(self) -> list[dict]:
        """Return stored records, highest priority first, and empty the store."""
        with self._lock:
            entries, self._heap = self._heap, []
        entries.sort(key=lambda e: (-e[0], e[1]))
        return [record for _, _, record in entries]


@dataclass(frozen=True)
class Trace:
    trace_id: str
    span_id: str
    name: str


class Agent:
    def __init__(self, config: dict | None = None) -> None:
        self.config = config or {}
        self.metrics = MetricRegistry()
        forwarding = self.config.get("application_logging", {}).get("forwarding", {})
        if forwarding.get("enabled", True):
            self.logs = LogAggregator(forwarding.get("max_samples_stored", 10000))
        else:
            self.logs = None
        self.hostname = socket.gethostname()

    def applications(self) -> list[str]:
        names = self.config.get("app_name") or []
        if isinstance(names, str):
            names = [n.strip() for n in names.split(";") if n.strip()]
        return list(names)


class Shim:
    def __init__(self, agent: Agent) -> None:
        self.agent = agent


class AgentApi:
    """Public agent handle. ``shim`` is None when the agent is disabled."""

    def __init__(self, agent: Agent | None = None) -> None:
        self.agent = agent
        self.shim = Shim(agent) if agent is not None else None

    @classmethod
    def from_config(cls, config) -> "AgentApi":
        """Live agent from an EnricherConfig, or a stub when the agent is disabled."""
        if not config.agent_enabled:
            return cls(None)
        return cls(Agent(config.agent_settings()))

    @contextmanager
    def start_trace(self, name: str):
        """Run the enclosed block inside a new trace."""
        trace = Trace(uuid.uuid4().hex, uuid.uuid4().hex[:16], name)
        token = _current_trace.set(trace)
        try:
            yield trace
        finally:
            _current_trace.reset(token)

    def current_trace(self) -> Trace | None:
        return _current_trace.get()

    def get_linking_metadata(self) -> dict:
        if self.agent is None:
            return {}
        apps = self.agent.applications()
        metadata = {
            "entity.name": apps[0] if apps else "",
            "entity.type": ENTITY_TYPE,
            "hostname": self.agent.hostname,
        }
        trace = _current_trace.get()
        if trace is not None:
            metadata["trace.id"] = trace.trace_id
            metadata["span.id"] = trace.span_id
        return metadata
