"""
Thread-safe metrics aggregation for a load test run.

The :class:`MetricsAggregator` is the only mutable structure that virtual
users share.  Every named trend owns a :class:`TrendState` guarded by its
own lock, so writers to different metrics never contend and a snapshot
never observes a half-applied ``record``.  Run-level counters (saturation
drops, skipped and interrupted iterations) and per-check pass/fail
counts live behind a separate counters lock.

Key Concepts Demonstrated:
- Lock-per-metric with a registry lock only for lazy creation
- Copy-under-lock, compute-outside-lock snapshots
- Linear-interpolation percentiles over the full sample buffer
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from loadgen.models import CheckResult, CheckSummary, MetricSummary, Sample

logger = logging.getLogger(__name__)

PERCENTILES = (50, 90, 95, 99)


def percentile(sorted_values: Sequence[float], pct: float) -> float:
    """
    Return the *pct* percentile of already-sorted values.

    Interpolates linearly between the two closest ranks, which is how k6
    and most load tools report trend percentiles.

    Args:
        sorted_values: Values in ascending order.
        pct: Percentile in the range ``0..100``.

    Returns:
        The interpolated value, or ``0.0`` for an empty sequence.
    """
    if not sorted_values:
        return 0.0
    rank = (len(sorted_values) - 1) * (pct / 100.0)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return float(sorted_values[lower])
    return sorted_values[lower] * (upper - rank) + sorted_values[upper] * (rank - lower)


class TrendState:
    """Running statistics and sample buffer for one metric name."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._count = 0
        self._failures = 0
        self._sum = 0.0
        self._min = math.inf
        self._max = -math.inf
        self._values: list[float] = []

    def add(self, value: float, failed: bool) -> None:
        with self._lock:
            self._count += 1
            self._sum += value
            if value < self._min:
                self._min = value
            if value > self._max:
                self._max = value
            if failed:
                self._failures += 1
            self._values.append(value)

    def summarize(self) -> MetricSummary:
        with self._lock:
            count = self._count
            failures = self._failures
            total = self._sum
            low = self._min
            high = self._max
            values = list(self._values)

        values.sort()
        p50, p90, p95, p99 = (percentile(values, pct) for pct in PERCENTILES)
        return MetricSummary(
            name=self.name,
            count=count,
            failures=failures,
            min=low if count else 0.0,
            max=high if count else 0.0,
            mean=total / count if count else 0.0,
            p50=p50,
            p90=p90,
            p95=p95,
            p99=p99,
        )


@dataclass(frozen=True)
class AggregateSnapshot:
    """
    Read-only view of everything the aggregator knows at one instant.

    This is the hand-off point to whatever renders or exports the report.
    """

    metrics: dict[str, MetricSummary] = field(default_factory=dict)
    checks: dict[str, CheckSummary] = field(default_factory=dict)
    dropped_iterations: int = 0
    skipped_iterations: int = 0
    interrupted_iterations: int = 0

    def count(self, metric_name: str) -> int:
        """Number of samples recorded for *metric_name* (``0`` if never seen)."""
        summary = self.metrics.get(metric_name)
        return summary.count if summary else 0

    @property
    def total_samples(self) -> int:
        return sum(summary.count for summary in self.metrics.values())

    @property
    def checks_pass_rate(self) -> float:
        passes = sum(check.passes for check in self.checks.values())
        total = passes + sum(check.fails for check in self.checks.values())
        return passes / total if total else 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "metrics": {name: s.to_dict() for name, s in self.metrics.items()},
            "checks": {
                name: {"passes": c.passes, "fails": c.fails}
                for name, c in self.checks.items()
            },
            "dropped_iterations": self.dropped_iterations,
            "skipped_iterations": self.skipped_iterations,
            "interrupted_iterations": self.interrupted_iterations,
        }


class MetricsAggregator:
    """
    Collect samples, check results and run counters from many threads.

    Once :meth:`freeze` has been called (the scheduler does this when the
    hard deadline abandons straggling iterations) late samples are
    discarded, so the final snapshot only describes iterations that
    finished inside the run.
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._trends: dict[str, TrendState] = {}
        self._counters_lock = threading.Lock()
        self._check_counts: dict[str, list[int]] = {}
        self._dropped = 0
        self._skipped = 0
        self._interrupted = 0
        self._frozen = threading.Event()

    def _trend(self, metric_name: str) -> TrendState:
        # Fast path without the registry lock; dict reads are atomic.
        state = self._trends.get(metric_name)
        if state is not None:
            return state
        with self._registry_lock:
            state = self._trends.get(metric_name)
            if state is None:
                state = TrendState(metric_name)
                self._trends[metric_name] = state
            return state

    @property
    def frozen(self) -> bool:
        return self._frozen.is_set()

    def freeze(self) -> None:
        """Stop accepting new samples and check results."""
        self._frozen.set()

    def record(self, metric_name: str, duration_ms: float, *, failed: bool = False) -> None:
        """Fold one duration value into the trend called *metric_name*."""
        if self.frozen:
            logger.debug("Ignoring late sample for %s after freeze", metric_name)
            return
        self._trend(metric_name).add(float(duration_ms), failed)

    def submit(self, sample: Sample) -> None:
        """Record a :class:`~loadgen.models.Sample` produced by an iteration."""
        self.record(sample.metric_name, sample.duration_ms, failed=sample.failed)

    def record_check(self, result: CheckResult) -> None:
        if self.frozen:
            return
        with self._counters_lock:
            counts = self._check_counts.setdefault(result.name, [0, 0])
            counts[0 if result.passed else 1] += 1

    def record_drop(self) -> None:
        with self._counters_lock:
            self._dropped += 1

    def record_skip(self) -> None:
        with self._counters_lock:
            self._skipped += 1

    def record_interrupted(self, count: int = 1) -> None:
        with self._counters_lock:
            self._interrupted += count

    def snapshot(self) -> AggregateSnapshot:
        """
        Return a consistent, read-only view of all statistics.

        Each trend is copied under its own lock, so writers are blocked for
        no longer than one list copy and no metric is ever reported with a
        count that disagrees with its sum, min or max.
        """
        with self._registry_lock:
            trends = list(self._trends.values())
        with self._counters_lock:
            checks = {
                name: CheckSummary(name=name, passes=counts[0], fails=counts[1])
                for name, counts in self._check_counts.items()
            }
            dropped = self._dropped
            skipped = self._skipped
            interrupted = self._interrupted

        return AggregateSnapshot(
            metrics={state.name: state.summarize() for state in trends},
            checks=checks,
            dropped_iterations=dropped,
            skipped_iterations=skipped,
            interrupted_iterations=interrupted,
        )
