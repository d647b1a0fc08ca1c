"""
Value types shared by the scheduler, virtual users and aggregator.

Every type here is either frozen or read-only once constructed.  The only
mutable state in a run lives inside
:class:`~loadgen.metrics.MetricsAggregator` and the virtual-user pool; the
objects below are passed around freely between threads without locking.

Key Concepts Demonstrated:
- Frozen dataclasses with ``__post_init__`` validation
- A read-only mapping (``MappingProxyType``) for the shared context
- Small helpers (``ok``, ``json_field``) that keep outcome handling out
  of the callers
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from loadgen.errors import ScenarioConfigError


@dataclass(frozen=True)
class ScenarioConfig:
    """
    Pacing and concurrency settings for one constant-arrival-rate run.

    Attributes:
        rate: Iterations started per ``time_unit``.
        duration: Length of the pacing phase in seconds.
        preallocated_vus: Virtual users created before the run starts.
        max_vus: Hard ceiling on concurrently in-flight iterations.
        time_unit: Period in seconds that ``rate`` refers to.
        graceful_stop: Seconds to wait for in-flight iterations once
            pacing ends.  ``None`` waits for as long as they take.
    """

    rate: float
    duration: float
    preallocated_vus: int
    max_vus: int
    time_unit: float = 1.0
    graceful_stop: float | None = 30.0

    def __post_init__(self) -> None:
        if self.rate <= 0:
            raise ScenarioConfigError("rate must be greater than zero")
        if self.duration <= 0:
            raise ScenarioConfigError("duration must be greater than zero")
        if self.time_unit <= 0:
            raise ScenarioConfigError("time_unit must be greater than zero")
        if self.max_vus < 1:
            raise ScenarioConfigError("max_vus must be at least 1")
        if not 0 <= self.preallocated_vus <= self.max_vus:
            raise ScenarioConfigError(
                "preallocated_vus must be between 0 and max_vus"
            )
        if self.graceful_stop is not None and self.graceful_stop < 0:
            raise ScenarioConfigError("graceful_stop must not be negative")

    @property
    def tick_interval(self) -> float:
        """Seconds between two consecutive dispatch attempts."""
        return self.time_unit / self.rate

    @property
    def expected_iterations(self) -> int:
        """Number of ticks that fit in ``duration`` (``rate * duration``)."""
        # Rounding first keeps 0.1 * 30 style products from becoming 3.0000000004.
        return math.ceil(round(self.rate * self.duration / self.time_unit, 9))


def _freeze(value: Any) -> Any:
    """Return a read-only copy of *value*, converting nested containers."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(item) for item in value)
    return value


class SharedContext(Mapping[str, Any]):
    """
    Immutable key/value data published by the setup phase.

    The constructor deep-copies its input into read-only containers
    (mappings become ``MappingProxyType``, lists become tuples), so nothing
    a virtual user does can change what another one sees.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        frozen = {key: _freeze(value) for key, value in (data or {}).items()}
        self._data = MappingProxyType(frozen)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"SharedContext({dict(self._data)!r})"

    def missing(self, keys: Iterable[str]) -> list[str]:
        """Return the required *keys* that are absent or empty."""
        return [key for key in keys if self._data.get(key) in (None, "")]


@dataclass(frozen=True)
class RequestSpec:
    """A single outbound request, independent of any HTTP library."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    json: Any = None
    timeout: float | None = None
    name: str | None = None


@dataclass(frozen=True)
class Outcome:
    """
    Result of one request through the transport.

    Attributes:
        status: HTTP status code, or ``0`` when no response was received.
        duration_ms: Wall-clock time spent on the request.
        body: Decoded JSON body, raw text, or ``None``.
        error: Transport error description, if any.
    """

    status: int
    duration_ms: float
    body: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status < 400

    def json_field(self, name: str) -> Any:
        """Return ``body[name]`` when the body is a JSON object, else ``None``."""
        if isinstance(self.body, dict):
            return self.body.get(name)
        return None


@dataclass(frozen=True)
class CheckResult:
    """Pass/fail result of one named check; purely observational."""

    name: str
    passed: bool


@dataclass(frozen=True)
class Check:
    """A named predicate evaluated against an :class:`Outcome`."""

    name: str
    predicate: Callable[[Outcome], bool]


@dataclass(frozen=True)
class Variant:
    """
    One weighted branch of the workload mix.

    Attributes:
        metric_name: Trend that receives this variant's duration samples.
        weight: Relative selection weight (non-negative).
        action: Callable that performs the request using the shared context.
        checks: Checks evaluated against every outcome of ``action``.
    """

    metric_name: str
    weight: float
    action: Callable[[SharedContext], Outcome]
    checks: tuple[Check, ...] = ()


@dataclass(frozen=True)
class Sample:
    """One duration measurement produced by exactly one iteration."""

    metric_name: str
    duration_ms: float
    timestamp: float = field(default_factory=time.time)
    failed: bool = False


class IterationStatus(Enum):
    """How a single virtual-user iteration ended."""

    COMPLETED = "completed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class MetricSummary:
    """Aggregated statistics for one trend, as of a snapshot."""

    name: str
    count: int
    failures: int
    min: float
    max: float
    mean: float
    p50: float
    p90: float
    p95: float
    p99: float

    @property
    def error_rate_percent(self) -> float:
        if self.count == 0:
            return 0.0
        return self.failures / self.count * 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "failures": self.failures,
            "min": self.min,
            "max": self.max,
            "mean": self.mean,
            "p50": self.p50,
            "p90": self.p90,
            "p95": self.p95,
            "p99": self.p99,
            "error_rate_percent": self.error_rate_percent,
        }


@dataclass(frozen=True)
class CheckSummary:
    """Pass and fail counts for one named check."""

    name: str
    passes: int
    fails: int

    @property
    def pass_rate(self) -> float:
        total = self.passes + self.fails
        return self.passes / total if total else 0.0
