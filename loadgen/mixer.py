"""
Weighted workload mixer.

Maps a uniform draw in ``[0, 1)`` onto a list of weighted variants by
partitioning the unit interval into contiguous, closed-open slices in
list order.  A draw that lands exactly on a boundary belongs to the
following slice, and zero-weight variants own an empty slice so they are
never chosen.
"""

from __future__ import annotations

import bisect
import random
from collections.abc import Sequence

from loadgen.errors import ScenarioConfigError
from loadgen.models import Variant


class WorkloadMixer:
    """
    Stateless weighted selection among :class:`~loadgen.models.Variant` s.

    The only state is the random source; ``random.Random`` methods are
    safe to call from several virtual-user threads at once.

    Args:
        variants: Ordered variants; at least one must have positive weight.
        rng: Random source, injectable for reproducible runs.

    Raises:
        ScenarioConfigError: If the list is empty, a weight is negative,
            or the weights sum to zero.
    """

    def __init__(self, variants: Sequence[Variant], rng: random.Random | None = None) -> None:
        if not variants:
            raise ScenarioConfigError("at least one variant is required")
        for variant in variants:
            if variant.weight < 0:
                raise ScenarioConfigError(
                    f"variant {variant.metric_name!r} has a negative weight"
                )
        total = sum(variant.weight for variant in variants)
        if total <= 0:
            raise ScenarioConfigError("variant weights must sum to more than zero")

        self._variants = tuple(variants)
        self._rng = rng or random.Random()

        bounds: list[float] = []
        running = 0.0
        for variant in self._variants:
            running += variant.weight
            bounds.append(running / total)
        # Pin the last positive-weight bound (and any zero-weight tail) to
        # exactly 1.0 so a draw just below 1.0 can never fall off the end.
        last_positive = max(i for i, v in enumerate(self._variants) if v.weight > 0)
        for index in range(last_positive, len(bounds)):
            bounds[index] = 1.0
        self._bounds = tuple(bounds)

    @property
    def variants(self) -> tuple[Variant, ...]:
        return self._variants

    def probabilities(self) -> dict[str, float]:
        """Return the normalized selection probability per metric name."""
        total = sum(variant.weight for variant in self._variants)
        result: dict[str, float] = {}
        for variant in self._variants:
            result[variant.metric_name] = result.get(variant.metric_name, 0.0) + (
                variant.weight / total
            )
        return result

    def pick(self, draw: float) -> Variant:
        """
        Return the variant whose slice of ``[0, 1)`` contains *draw*.

        Raises:
            ValueError: If *draw* is outside ``[0, 1)``.
        """
        if not 0.0 <= draw < 1.0:
            raise ValueError(f"draw must be in [0, 1), got {draw!r}")
        # bisect_right puts a draw equal to a bound into the next slice.
        index = bisect.bisect_right(self._bounds, draw)
        return self._variants[index]

    def select(self) -> Variant:
        """Draw from the random source and return the selected variant."""
        return self.pick(self._rng.random())
