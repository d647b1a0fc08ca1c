"""
Virtual user: executes one iteration at a time.

An iteration is: check the shared context, pick a variant, run its
action, evaluate its checks, and submit exactly one sample.  Nothing an
iteration encounters is fatal; every failure ends up as data in the
aggregator.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from loadgen.checks import evaluate_checks
from loadgen.metrics import MetricsAggregator
from loadgen.mixer import WorkloadMixer
from loadgen.models import CheckResult, IterationStatus, Outcome, Sample, SharedContext, Variant

logger = logging.getLogger(__name__)


def _settle_now(record: Callable[[], None]) -> None:
    record()


class VirtualUser:
    """
    One concurrent execution unit.

    Args:
        vu_id: Identifier used in log messages.
        mixer: Selects the variant for every iteration.
        aggregator: Receives samples, check results and skip events.
        required_keys: Context keys that must be present and non-empty
            for an iteration to run.
    """

    def __init__(
        self,
        vu_id: int,
        mixer: WorkloadMixer,
        aggregator: MetricsAggregator,
        required_keys: Sequence[str] = (),
    ) -> None:
        self.vu_id = vu_id
        self.mixer = mixer
        self.aggregator = aggregator
        self.required_keys = tuple(required_keys)
        self.iterations = 0

    def _invoke(self, variant: Variant, context: SharedContext) -> Outcome:
        started = time.perf_counter()
        try:
            return variant.action(context)
        except Exception as exc:
            # Actions are supposed to report failures as outcomes; one that
            # raises anyway still counts as a completed, failed request.
            logger.warning(
                "VU %s: action for %s raised %s", self.vu_id, variant.metric_name, exc
            )
            return Outcome(
                status=0,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=str(exc) or type(exc).__name__,
            )

    def _record(self, results: list[CheckResult], sample: Sample) -> None:
        for result in results:
            self.aggregator.record_check(result)
        self.aggregator.submit(sample)

    def run_iteration(
        self,
        context: SharedContext | None,
        settle: Callable[[Callable[[], None]], None] = _settle_now,
    ) -> IterationStatus:
        """
        Run one iteration against *context*.

        Args:
            context: Shared context published by the setup phase.
            settle: Called once with the step that records the iteration's
                result (its checks and sample, or the skip).  The pool
                passes one that makes recording and releasing this user a
                single step against the graceful-stop deadline.

        Returns:
            ``SKIPPED`` when the context is missing or lacks a required
            key (no request is made), ``COMPLETED`` otherwise.
        """
        if context is None:
            logger.error("VU %s has no shared context, skipping iteration", self.vu_id)
            settle(self.aggregator.record_skip)
            return IterationStatus.SKIPPED

        missing = context.missing(self.required_keys)
        if missing:
            logger.error(
                "VU %s context is missing %s, skipping iteration",
                self.vu_id,
                ", ".join(missing),
            )
            settle(self.aggregator.record_skip)
            return IterationStatus.SKIPPED

        variant = self.mixer.select()
        outcome = self._invoke(variant, context)

        results = evaluate_checks(variant.checks, outcome)
        sample = Sample(
            metric_name=variant.metric_name,
            duration_ms=outcome.duration_ms,
            failed=not outcome.ok,
        )
        self.iterations += 1
        settle(lambda: self._record(results, sample))
        return IterationStatus.COMPLETED
