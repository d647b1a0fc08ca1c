"""
Run orchestration: setup, pacing, drain, snapshot, thresholds.

:func:`run_scenario` is the single entry point the CLI and the
integration tests use.  The ordering guarantee lives here: the setup
phase has fully completed and published its context before the pool is
even started, and a setup failure propagates before anything is
dispatched.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field

from loadgen.metrics import AggregateSnapshot, MetricsAggregator
from loadgen.mixer import WorkloadMixer
from loadgen.models import ScenarioConfig, SharedContext, Variant
from loadgen.scheduler import ArrivalScheduler, ScheduleStats, VirtualUserPool
from loadgen.setup_phase import SetupPhaseRunner
from loadgen.thresholds import Threshold, ThresholdResult, evaluate_thresholds
from loadgen.virtual_user import VirtualUser

logger = logging.getLogger(__name__)


@dataclass
class Scenario:
    """
    Everything needed to execute one load test.

    Attributes:
        name: Label used in logs and reports.
        config: Pacing and concurrency settings.
        variants: Weighted workload mix.
        setup: Optional setup phase; without one every iteration gets an
            empty context.
        required_keys: Context keys each iteration needs.  Defaults to the
            keys the setup phase publishes.
        thresholds: Pass/fail gates evaluated after the run.
    """

    name: str
    config: ScenarioConfig
    variants: Sequence[Variant]
    setup: SetupPhaseRunner | None = None
    required_keys: Sequence[str] | None = None
    thresholds: Sequence[Threshold] = field(default_factory=list)

    def context_requirements(self) -> tuple[str, ...]:
        if self.required_keys is not None:
            return tuple(self.required_keys)
        if self.setup is not None:
            return self.setup.context_keys
        return ()


@dataclass(frozen=True)
class RunResult:
    """Snapshot, pacing statistics and threshold results of a finished run."""

    scenario: str
    snapshot: AggregateSnapshot
    schedule: ScheduleStats
    thresholds: list[ThresholdResult]

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.thresholds)


def run_scenario(
    scenario: Scenario,
    aggregator: MetricsAggregator | None = None,
    rng: random.Random | None = None,
) -> RunResult:
    """
    Execute *scenario* and return its results.

    A scenario can be run any number of times; each run performs its own
    setup request.

    Args:
        scenario: The scenario to run.
        aggregator: Aggregator to record into; a fresh one by default.
            A setup runner without an aggregator of its own records its
            checks here too.
        rng: Random source for the workload mixer.

    Returns:
        The :class:`RunResult` of the completed run.

    Raises:
        SetupError: If the setup phase failed.  Nothing is dispatched.
    """
    aggregator = aggregator or MetricsAggregator()
    mixer = WorkloadMixer(scenario.variants, rng=rng)
    required_keys = scenario.context_requirements()

    logger.info("Scenario %r: mix %s", scenario.name, mixer.probabilities())
    if scenario.setup is not None:
        setup = scenario.setup.fresh()
        context = setup.run(aggregator if setup.aggregator is None else None)
    else:
        context = SharedContext()

    pool = VirtualUserPool(
        lambda vu_id: VirtualUser(vu_id, mixer, aggregator, required_keys),
        preallocated=scenario.config.preallocated_vus,
        max_vus=scenario.config.max_vus,
    )
    pool.start()
    scheduler = ArrivalScheduler(scenario.config, pool, aggregator)
    try:
        stats = scheduler.run(context)
    finally:
        pool.shutdown(wait=pool.in_flight == 0)

    snapshot = aggregator.snapshot()
    results = evaluate_thresholds(scenario.thresholds, snapshot)
    for result in results:
        if not result.passed:
            logger.warning(
                "Threshold %s.%s breached: actual=%s limit=%s",
                result.threshold.metric,
                result.threshold.stat,
                result.actual,
                result.threshold.limit,
            )
    return RunResult(
        scenario=scenario.name,
        snapshot=snapshot,
        schedule=stats,
        thresholds=results,
    )
