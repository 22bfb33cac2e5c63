"""Tests for forwarding trace-linked records to the aggregator."""

from unittest.mock import MagicMock

from log_enricher.forwarder import maybe_forward


def test_forwards_trace_linked_record(collector):
    record = {"message": "in trace", "trace.id": "abc123"}
    assert maybe_forward(record, 0.9, collector) is True
    assert len(collector.calls) == 1
    forwarded, priority = collector.calls[0]
    assert forwarded is record
    assert priority == 0.9


def test_skips_record_without_trace_id(collector):
    assert maybe_forward({"message": "no trace"}, 0.9, collector) is False
    assert collector.calls == []


def test_skips_empty_trace_id(collector):
    assert maybe_forward({"trace.id": ""}, None, collector) is False
    assert collector.calls == []


def test_no_collector():
    assert maybe_forward({"trace.id": "abc"}, 1, None) is False


def test_collector_failure_swallowed():
    collector = MagicMock()
    collector.add.side_effect = RuntimeError("full")
    assert maybe_forward({"trace.id": "abc"}, 1, collector) is True
    collector.add.assert_called_once()
