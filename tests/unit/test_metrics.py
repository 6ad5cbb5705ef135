"""Tests for the metrics collection module."""

import time

import pytest

from delearner.utils.metrics import (
    Counter,
    Histogram,
    MetricsRegistry,
    MetricType,
    Timer,
    get_metrics,
)


class TestCounter:
    """Tests for Counter metric."""

    def test_counter_initial_value(self) -> None:
        """Test counter starts at zero."""
        counter = Counter("test_counter", "Test counter")
        assert counter.get() == 0

    def test_counter_increment_by_one(self) -> None:
        """Test counter increment by default value."""
        counter = Counter("test_counter")
        counter.inc()
        assert counter.get() == 1

    def test_counter_increment_by_value(self) -> None:
        """Test counter increment by specific value."""
        counter = Counter("test_counter")
        counter.inc(5)
        assert counter.get() == 5

    def test_counter_multiple_increments(self) -> None:
        """Test multiple counter increments."""
        counter = Counter("test_counter")
        counter.inc()
        counter.inc(3)
        counter.inc(2)
        assert counter.get() == 6

    def test_counter_with_labels(self) -> None:
        """Test counter with labels."""
        counter = Counter("test_counter")
        counter.inc(labels={"type": "success"})
        counter.inc(labels={"type": "error"})
        counter.inc(labels={"type": "success"})

        assert counter.get(labels={"type": "success"}) == 2
        assert counter.get(labels={"type": "error"}) == 1
        assert counter.get(labels={"type": "unknown"}) == 0

    def test_counter_cannot_decrease(self) -> None:
        """Test that counter rejects negative values."""
        counter = Counter("test_counter")
        with pytest.raises(ValueError, match="can only increase"):
            counter.inc(-1)

    def test_counter_get_all(self) -> None:
        """Test getting all counter values."""
        counter = Counter("test_counter", "Help text")
        counter.inc(labels={"a": "1"})
        counter.inc(2, labels={"a": "2"})

        values = counter.get_all()
        assert len(values) == 2
        assert all(v.type == MetricType.COUNTER for v in values)


class TestHistogram:
    """Tests for Histogram metric."""

    def test_histogram_observe(self) -> None:
        """Test histogram observation."""
        histogram = Histogram("test_histogram")
        histogram.observe(0.5)
        histogram.observe(1.0)
        histogram.observe(1.5)

        stats = histogram.get_stats()
        assert stats["count"] == 3
        assert stats["sum"] == 3.0
        assert stats["min"] == 0.5
        assert stats["max"] == 1.5

    def test_histogram_empty(self) -> None:
        """Test histogram with no observations."""
        histogram = Histogram("test_histogram")
        stats = histogram.get_stats()
        assert stats["count"] == 0
        assert stats["sum"] == 0

    def test_histogram_mean(self) -> None:
        """Test histogram mean calculation."""
        histogram = Histogram("test_histogram")
        histogram.observe(1.0)
        histogram.observe(2.0)
        histogram.observe(3.0)

        stats = histogram.get_stats()
        assert stats["mean"] == 2.0

    def test_histogram_buckets(self) -> None:
        """Test histogram bucket counts."""
        histogram = Histogram("test_histogram", buckets=(1.0, 5.0, 10.0, float("inf")))
        histogram.observe(0.5)  # <= 1.0
        histogram.observe(3.0)  # <= 5.0
        histogram.observe(7.0)  # <= 10.0
        histogram.observe(15.0)  # <= inf

        buckets = histogram.get_buckets()
        assert buckets[1.0] == 1
        assert buckets[5.0] == 1
        assert buckets[10.0] == 1
        assert buckets[float("inf")] == 1

    def test_histogram_with_labels(self) -> None:
        """Test histogram with labels."""
        histogram = Histogram("test_histogram")
        histogram.observe(1.0, labels={"operation": "read"})
        histogram.observe(2.0, labels={"operation": "write"})

        read_stats = histogram.get_stats(labels={"operation": "read"})
        assert read_stats["count"] == 1
        assert read_stats["sum"] == 1.0


class TestMetricsRegistry:
    """Tests for MetricsRegistry singleton."""

    def test_singleton_instance(self) -> None:
        """Test that get_instance returns singleton."""
        instance1 = MetricsRegistry.get_instance()
        instance2 = MetricsRegistry.get_instance()
        assert instance1 is instance2

    def test_reset_instance(self) -> None:
        """Test that reset_instance starts a fresh registry."""
        before = get_metrics()
        before.analysis_requests.inc()

        MetricsRegistry.reset_instance()

        assert get_metrics() is not before
        assert get_metrics().analysis_requests.total() == 0

    def test_get_metrics_function(self) -> None:
        """Test get_metrics convenience function."""
        registry = get_metrics()
        assert isinstance(registry, MetricsRegistry)

    def test_registry_has_expected_metrics(self) -> None:
        """Test that registry has expected metrics."""
        registry = get_metrics()

        assert hasattr(registry, "analysis_requests")
        assert hasattr(registry, "analysis_failures")
        assert hasattr(registry, "preflight_rejections")
        assert hasattr(registry, "stale_responses")
        assert hasattr(registry, "findings_dropped")
        assert hasattr(registry, "patches_applied")
        assert hasattr(registry, "analysis_duration")

    def test_registry_get_all_metrics(self) -> None:
        """Test getting all metrics as dictionary."""
        registry = get_metrics()
        registry.analysis_requests.inc(labels={"mode": "project", "backend": "fake"})
        registry.analysis_requests.inc(labels={"mode": "quick_run", "backend": "fake"})
        metrics = registry.get_all_metrics()

        assert "uptime_seconds" in metrics
        assert metrics["analysis"]["requests"] == 2
        assert metrics["patches"]["applied"] == 0

    def test_registry_uptime(self) -> None:
        """Test uptime tracking."""
        registry = get_metrics()
        uptime = registry.get_uptime_seconds()
        assert uptime >= 0

    def test_registry_prometheus_format(self) -> None:
        """Test Prometheus format export."""
        registry = get_metrics()
        registry.stale_responses.inc(labels={"family": "analysis"})
        output = registry.to_prometheus_format()

        assert "# TYPE delearner_stale_responses_total counter" in output
        assert 'delearner_stale_responses_total{family="analysis"} 1.0' in output
        assert "gauge" in output


class TestTimer:
    """Tests for Timer context manager."""

    def test_timer_records_duration(self) -> None:
        """Test that timer records duration."""
        histogram = Histogram("test_timer")

        with Timer(histogram) as timer:
            time.sleep(0.01)  # Sleep 10ms

        stats = histogram.get_stats()
        assert stats["count"] == 1
        assert stats["sum"] >= 0.01
        assert timer.elapsed is not None
        assert timer.elapsed >= 0.01

    def test_timer_with_labels(self) -> None:
        """Test timer with labels."""
        histogram = Histogram("test_timer")

        with Timer(histogram, labels={"mode": "single_file"}):
            pass

        stats = histogram.get_stats(labels={"mode": "single_file"})
        assert stats["count"] == 1

    def test_timer_records_on_exception(self) -> None:
        """Test that timer records even if exception is raised."""
        histogram = Histogram("test_timer")

        with pytest.raises(ValueError), Timer(histogram):
            raise ValueError("test error")

        stats = histogram.get_stats()
        assert stats["count"] == 1


class TestMetricIntegration:
    """Integration tests for metrics."""

    def test_analysis_workflow(self) -> None:
        """Test a request that succeeds and one that is superseded."""
        registry = MetricsRegistry()

        registry.analysis_requests.inc(labels={"mode": "single_file", "backend": "anthropic"})
        with Timer(registry.analysis_duration, labels={"mode": "single_file"}):
            pass
        registry.analysis_requests.inc(labels={"mode": "single_file", "backend": "anthropic"})
        registry.stale_responses.inc(labels={"family": "analysis"})
        registry.patches_applied.inc(labels={"kind": "fix"})

        assert registry.analysis_requests.total() == 2
        assert registry.analysis_duration.get_stats({"mode": "single_file"})["count"] == 1
        assert registry.stale_responses.get({"family": "analysis"}) == 1
        assert registry.patches_applied.get({"kind": "fix"}) == 1

    def test_failure_workflow(self) -> None:
        """Test counting failures by stage."""
        registry = MetricsRegistry()

        registry.preflight_rejections.inc(labels={"reason": "language_mismatch"})
        registry.analysis_requests.inc(labels={"mode": "quick_run", "backend": "anthropic"})
        registry.analysis_failures.inc(labels={"mode": "quick_run", "stage": "backend"})

        assert registry.preflight_rejections.total() == 1
        assert registry.analysis_failures.get({"mode": "quick_run", "stage": "backend"}) == 1
        assert registry.findings_dropped.total() == 0
