"""In-process metrics for the analysis pipeline.

Counters and histograms for backend requests, failures, stale responses and
applied patches. Values are exported as a dictionary or in Prometheus text
format.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from threading import Lock
from typing import Any

import structlog

log = structlog.get_logger()


class MetricType(StrEnum):
    """Types of metrics."""

    COUNTER = "counter"
    HISTOGRAM = "histogram"


@dataclass
class MetricValue:
    """A single metric value with metadata."""

    name: str
    type: MetricType
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    help_text: str = ""


def _label_key(labels: dict[str, str] | None) -> tuple[tuple[str, str], ...]:
    return tuple(sorted(labels.items())) if labels else ()


class Counter:
    """A monotonically increasing counter.

    Example:
        counter = Counter("analysis_requests_total", "Total analysis requests")
        counter.inc()
        counter.inc(labels={"mode": "project"})
    """

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[tuple[tuple[str, str], ...], float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the counter.

        Raises:
            ValueError: If value is negative.
        """
        if value < 0:
            raise ValueError("Counter can only increase")

        with self._lock:
            self._values[_label_key(labels)] += value

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Get current counter value for the given labels."""
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def total(self) -> float:
        """Sum the counter across every label set."""
        with self._lock:
            return sum(self._values.values())

    def get_all(self) -> list[MetricValue]:
        """Get all counter values with their labels."""
        with self._lock:
            return [
                MetricValue(
                    name=self.name,
                    type=MetricType.COUNTER,
                    value=value,
                    labels=dict(label_key),
                    help_text=self.help_text,
                )
                for label_key, value in self._values.items()
            ]


class Histogram:
    """A histogram metric for tracking value distributions."""

    DEFAULT_BUCKETS = (0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, float("inf"))

    def __init__(
        self,
        name: str,
        help_text: str = "",
        buckets: tuple[float, ...] | None = None,
    ) -> None:
        self.name = name
        self.help_text = help_text
        self._buckets = buckets or self.DEFAULT_BUCKETS
        self._observations: dict[tuple[tuple[str, str], ...], list[float]] = defaultdict(list)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Record an observation."""
        with self._lock:
            self._observations[_label_key(labels)].append(value)

    def get_stats(self, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Get count, sum, min, max and mean for the given labels."""
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        if not values:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "mean": 0}

        return {
            "count": len(values),
            "sum": sum(values),
            "min": min(values),
            "max": max(values),
            "mean": sum(values) / len(values),
        }

    def get_buckets(self, labels: dict[str, str] | None = None) -> dict[float, int]:
        """Get bucket counts (each observation lands in its smallest bucket)."""
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        bucket_counts: dict[float, int] = dict.fromkeys(self._buckets, 0)
        for value in values:
            for bucket in self._buckets:
                if value <= bucket:
                    bucket_counts[bucket] += 1
                    break

        return bucket_counts


class MetricsRegistry:
    """Registry for all application metrics (process-wide singleton)."""

    _instance: MetricsRegistry | None = None
    _lock = Lock()

    def __init__(self) -> None:
        self.analysis_requests = Counter(
            "delearner_analysis_requests_total",
            "Total analysis requests sent to the generation backend",
        )
        self.analysis_failures = Counter(
            "delearner_analysis_failures_total",
            "Total analysis requests that ended in AnalysisFailure",
        )
        self.preflight_rejections = Counter(
            "delearner_preflight_rejections_total",
            "Total actions blocked locally before any backend call",
        )
        self.stale_responses = Counter(
            "delearner_stale_responses_total",
            "Total responses discarded because a newer request superseded them",
        )
        self.findings_dropped = Counter(
            "delearner_findings_dropped_total",
            "Total findings dropped because they named an unknown file",
        )
        self.patches_applied = Counter(
            "delearner_patches_applied_total",
            "Total fixes and suggestions applied to the file store",
        )
        self.analysis_duration = Histogram(
            "delearner_analysis_duration_seconds",
            "Backend round-trip duration in seconds",
        )

        self._start_time = time.time()

    @classmethod
    def get_instance(cls) -> MetricsRegistry:
        """Get the singleton metrics registry instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the singleton so the next access starts from zero."""
        with cls._lock:
            cls._instance = None

    def _counters(self) -> list[Counter]:
        return [
            self.analysis_requests,
            self.analysis_failures,
            self.preflight_rejections,
            self.stale_responses,
            self.findings_dropped,
            self.patches_applied,
        ]

    def get_uptime_seconds(self) -> float:
        """Get uptime in seconds."""
        return time.time() - self._start_time

    def get_all_metrics(self) -> dict[str, Any]:
        """Get all metrics as a dictionary."""
        return {
            "uptime_seconds": self.get_uptime_seconds(),
            "analysis": {
                "requests": self.analysis_requests.total(),
                "failures": self.analysis_failures.total(),
                "preflight_rejections": self.preflight_rejections.total(),
                "stale_responses": self.stale_responses.total(),
                "findings_dropped": self.findings_dropped.total(),
                "duration_stats": self.analysis_duration.get_stats(),
            },
            "patches": {
                "applied": self.patches_applied.total(),
            },
        }

    def to_prometheus_format(self) -> str:
        """Export counters in Prometheus text format."""
        lines: list[str] = []

        for counter in self._counters():
            if counter.help_text:
                lines.append(f"# HELP {counter.name} {counter.help_text}")
            lines.append(f"# TYPE {counter.name} counter")
            for metric in counter.get_all():
                if metric.labels:
                    label_str = ",".join(f'{k}="{v}"' for k, v in metric.labels.items())
                    lines.append(f"{counter.name}{{{label_str}}} {metric.value}")
                else:
                    lines.append(f"{counter.name} {metric.value}")

        lines.append("# HELP delearner_uptime_seconds Process uptime in seconds")
        lines.append("# TYPE delearner_uptime_seconds gauge")
        lines.append(f"delearner_uptime_seconds {self.get_uptime_seconds()}")

        return "\n".join(lines)


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    return MetricsRegistry.get_instance()


class Timer:
    """Context manager for timing operations.

    Example:
        with Timer(metrics.analysis_duration, labels={"mode": "quick_run"}):
            text = await backend.generate(request)
    """

    def __init__(
        self,
        histogram: Histogram,
        labels: dict[str, str] | None = None,
    ) -> None:
        self._histogram = histogram
        self._labels = labels
        self._start: float | None = None
        self.elapsed: float | None = None

    def __enter__(self) -> Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        if self._start is not None:
            self.elapsed = time.perf_counter() - self._start
            self._histogram.observe(self.elapsed, labels=self._labels)
