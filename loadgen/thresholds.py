"""
Pass/fail gates evaluated against a finished run.

Thresholds turn a metrics snapshot into a CI decision.  Per-metric limits
cover latency percentiles and the error rate; run-level limits cover the
overall check pass rate and the number of saturation drops.  A threshold
on a metric that recorded no samples fails, because "no data" should not
silently pass a gate.

Scenario files express thresholds as a mapping::

    thresholds:
      browse:
        max_p95_ms: 500
        max_error_rate_percent: 1
      run:
        min_checks_pass_rate: 0.99
        max_dropped_iterations: 0
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from loadgen.errors import ScenarioConfigError
from loadgen.metrics import AggregateSnapshot
from loadgen.models import MetricSummary

RUN_SCOPE = "run"

# stat name -> attribute of MetricSummary; every metric stat is an upper bound.
METRIC_STATS: dict[str, Callable[[MetricSummary], float]] = {
    "max_p50_ms": lambda s: s.p50,
    "max_p90_ms": lambda s: s.p90,
    "max_p95_ms": lambda s: s.p95,
    "max_p99_ms": lambda s: s.p99,
    "max_mean_ms": lambda s: s.mean,
    "max_ms": lambda s: s.max,
    "max_error_rate_percent": lambda s: s.error_rate_percent,
}

RUN_STATS = ("min_checks_pass_rate", "max_dropped_iterations")


@dataclass(frozen=True)
class Threshold:
    """A single limit: ``metric`` is a trend name or ``"run"``."""

    metric: str
    stat: str
    limit: float


@dataclass(frozen=True)
class ThresholdResult:
    """Outcome of one threshold; ``actual`` is ``None`` when there was no data."""

    threshold: Threshold
    actual: float | None
    passed: bool


def parse_thresholds(data: Mapping[str, Any] | None) -> list[Threshold]:
    """
    Build :class:`Threshold` objects from a scenario-file mapping.

    Raises:
        ScenarioConfigError: On unknown stat names or non-numeric limits.
    """
    thresholds: list[Threshold] = []
    for metric, limits in (data or {}).items():
        if not isinstance(limits, Mapping):
            raise ScenarioConfigError(f"thresholds.{metric} must be a mapping")
        allowed = RUN_STATS if metric == RUN_SCOPE else tuple(METRIC_STATS)
        for stat, raw_limit in limits.items():
            if stat not in allowed:
                raise ScenarioConfigError(
                    f"unknown threshold thresholds.{metric}.{stat}; "
                    f"expected one of {', '.join(allowed)}"
                )
            try:
                limit = float(raw_limit)
            except (TypeError, ValueError) as exc:
                raise ScenarioConfigError(
                    f"thresholds.{metric}.{stat} must be numeric, got {raw_limit!r}"
                ) from exc
            thresholds.append(Threshold(metric=str(metric), stat=stat, limit=limit))
    return thresholds


def _evaluate_one(threshold: Threshold, snapshot: AggregateSnapshot) -> ThresholdResult:
    if threshold.metric == RUN_SCOPE:
        if threshold.stat == "min_checks_pass_rate":
            actual = snapshot.checks_pass_rate
            return ThresholdResult(threshold, actual, actual >= threshold.limit)
        actual = float(snapshot.dropped_iterations)
        return ThresholdResult(threshold, actual, actual <= threshold.limit)

    summary = snapshot.metrics.get(threshold.metric)
    if summary is None or summary.count == 0:
        return ThresholdResult(threshold, None, False)
    actual = METRIC_STATS[threshold.stat](summary)
    return ThresholdResult(threshold, actual, actual <= threshold.limit)


def evaluate_thresholds(
    thresholds: Iterable[Threshold], snapshot: AggregateSnapshot
) -> list[ThresholdResult]:
    """Evaluate every threshold against *snapshot*, preserving order."""
    return [_evaluate_one(threshold, snapshot) for threshold in thresholds]
