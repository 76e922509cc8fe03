"""Tests for MetricsCollector."""

import pytest

from shared.metrics import MetricsCollector


class TestMetricsCollector:
    """Test MetricsCollector."""

    def test_timer(self):
        """Stopped timers record a duration sample."""
        metrics = MetricsCollector()

        metrics.start_timer("run")
        elapsed = metrics.stop_timer("run")

        assert elapsed >= 0
        assert metrics.get_metric("run_duration") == [elapsed]

    def test_stop_unknown_timer(self):
        with pytest.raises(KeyError):
            MetricsCollector().stop_timer("never")

    def test_counters(self):
        metrics = MetricsCollector()
        metrics.increment_counter("success")
        metrics.increment_counter("success", 2)

        assert metrics.get_counter("success") == 3
        assert metrics.get_counter("missing") == 0

    def test_summary_statistics(self):
        """Numeric samples are summarized; others are listed."""
        metrics = MetricsCollector()
        for value in (1.0, 2.0, 6.0):
            metrics.record_metric("job_seconds", value)
        metrics.record_metric("notes", "slow")

        summary = metrics.get_summary()

        assert summary["metrics"]["job_seconds"] == {"count": 3, "sum": 9.0, "avg": 3.0, "min": 1.0, "max": 6.0}
        assert summary["metrics"]["notes"] == {"count": 1, "values": ["slow"]}
        assert "total_elapsed" in summary

    def test_reset(self):
        metrics = MetricsCollector()
        metrics.increment_counter("x")
        metrics.record_metric("y", 1)

        metrics.reset()

        assert metrics.get_summary()["counters"] == {}
        assert metrics.get_metric("y") == []
