"""
loadgen — constant-arrival-rate load generator.

Starts iterations at a target rate with a bounded pool of virtual users,
mixes weighted request variants, and aggregates per-endpoint latency and
check results for SLO validation before a rollout.

Components, leaves first:

- :mod:`.metrics` — thread-safe aggregator (trends, checks, run counters)
- :mod:`.mixer` — weighted variant selection
- :mod:`.setup_phase` — one-shot setup that publishes the shared context
- :mod:`.virtual_user` — executes one iteration
- :mod:`.scheduler` — arrival-rate pacing over a virtual-user pool
- :mod:`.runner` — ties the above together for one scenario
"""

from loadgen.errors import LoadgenError, ScenarioConfigError, SetupError
from loadgen.metrics import AggregateSnapshot, MetricsAggregator
from loadgen.mixer import WorkloadMixer
from loadgen.models import (
    Check,
    CheckResult,
    IterationStatus,
    Outcome,
    RequestSpec,
    Sample,
    ScenarioConfig,
    SharedContext,
    Variant,
)
from loadgen.runner import RunResult, Scenario, run_scenario
from loadgen.scheduler import ArrivalScheduler, ScheduleStats, VirtualUserPool
from loadgen.setup_phase import SetupPhaseRunner
from loadgen.virtual_user import VirtualUser

__all__ = [
    "AggregateSnapshot",
    "ArrivalScheduler",
    "Check",
    "CheckResult",
    "IterationStatus",
    "LoadgenError",
    "MetricsAggregator",
    "Outcome",
    "RequestSpec",
    "RunResult",
    "Sample",
    "Scenario",
    "ScenarioConfig",
    "ScenarioConfigError",
    "ScheduleStats",
    "SetupError",
    "SetupPhaseRunner",
    "SharedContext",
    "Variant",
    "VirtualUser",
    "VirtualUserPool",
    "WorkloadMixer",
    "run_scenario",
]
