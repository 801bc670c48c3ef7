"""Unit tests for in-process latency observability helpers."""

from __future__ import annotations

import pytest

from storyloom.observability import default_recorder
from storyloom.observability import latency_metrics_snapshot
from storyloom.observability import LatencyRecorder
from storyloom.observability import reset_latency_metrics


class TestLatencyRecorder:
    def test_records_latency_aggregates(self):
        recorder = LatencyRecorder()
        recorder.record("agent.extract", 10.0)
        recorder.record("agent.extract", 30.0, ok=False)

        metrics = recorder.snapshot()["agent.extract"]
        assert metrics["count"] == 2
        assert metrics["error_count"] == 1
        assert metrics["total_ms"] == 40.0
        assert metrics["avg_ms"] == 20.0
        assert metrics["min_ms"] == 10.0
        assert metrics["max_ms"] == 30.0

    def test_negative_durations_clamped(self):
        recorder = LatencyRecorder()
        recorder.record("agent.weave", -5.0)
        assert recorder.snapshot()["agent.weave"]["min_ms"] == 0.0

    async def test_track_records_success(self):
        recorder = LatencyRecorder()
        async with recorder.track("narrative.run"):
            pass
        metrics = recorder.snapshot()["narrative.run"]
        assert metrics["count"] == 1
        assert metrics["error_count"] == 0

    async def test_track_records_error_and_reraises(self):
        recorder = LatencyRecorder()
        with pytest.raises(RuntimeError):
            async with recorder.track("agent.negotiate"):
                raise RuntimeError("boom")
        metrics = recorder.snapshot()["agent.negotiate"]
        assert metrics["count"] == 1
        assert metrics["error_count"] == 1

    def test_snapshot_is_sorted_by_operation(self):
        recorder = LatencyRecorder()
        recorder.record("b", 1.0)
        recorder.record("a", 1.0)
        assert list(recorder.snapshot()) == ["a", "b"]


class TestDefaultRecorder:
    def setup_method(self):
        reset_latency_metrics()

    def teardown_method(self):
        reset_latency_metrics()

    def test_module_helpers_share_default(self):
        default_recorder().record("narrative.run", 12.0)
        assert latency_metrics_snapshot()["narrative.run"]["count"] == 1

    def test_reset_clears_all_metrics(self):
        default_recorder().record("narrative.run", 12.0)
        reset_latency_metrics()
        assert latency_metrics_snapshot() == {}
