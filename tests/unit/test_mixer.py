"""
Unit tests for weighted variant selection.

Key SDET Concepts Demonstrated:
- Boundary testing of closed-open intervals
- Statistical convergence with a seeded random source
- Negative tests for invalid weight configurations
"""

from __future__ import annotations

import random
from collections import Counter

import pytest

from loadgen.errors import ScenarioConfigError
from loadgen.mixer import WorkloadMixer

pytestmark = pytest.mark.unit


def test_frequencies_converge_to_weights(variant_factory):
    """80/20 weights over 100,000 draws land within one percentage point."""
    # Arrange
    mixer = WorkloadMixer(
        [variant_factory("browse", 0.8), variant_factory("submit", 0.2)],
        rng=random.Random(1234),
    )
    draws = 100_000

    # Act
    counts = Counter(mixer.select().metric_name for _ in range(draws))

    # Assert
    assert counts["browse"] / draws == pytest.approx(0.8, abs=0.01)
    assert counts["submit"] / draws == pytest.approx(0.2, abs=0.01)


def test_boundary_draw_belongs_to_following_interval(variant_factory):
    """A draw equal to a bound selects the next variant (closed-open)."""
    mixer = WorkloadMixer([variant_factory("browse", 1), variant_factory("submit", 1)])

    assert mixer.pick(0.0).metric_name == "browse"
    assert mixer.pick(0.4999).metric_name == "browse"
    assert mixer.pick(0.5).metric_name == "submit"
    assert mixer.pick(0.9999999).metric_name == "submit"


def test_weights_are_normalized(variant_factory):
    """Weights need not sum to one; 3:1 behaves like 0.75:0.25."""
    mixer = WorkloadMixer([variant_factory("browse", 3), variant_factory("submit", 1)])

    assert mixer.probabilities() == {"browse": 0.75, "submit": 0.25}
    assert mixer.pick(0.7499).metric_name == "browse"
    assert mixer.pick(0.75).metric_name == "submit"


def test_zero_weight_variant_is_never_selected(variant_factory):
    mixer = WorkloadMixer(
        [
            variant_factory("never_first", 0),
            variant_factory("browse", 1),
            variant_factory("never_middle", 0),
            variant_factory("submit", 1),
            variant_factory("never_last", 0),
        ]
    )

    picked = {mixer.pick(draw / 1000).metric_name for draw in range(1000)}

    assert picked == {"browse", "submit"}


def test_supports_more_than_two_variants(variant_factory):
    mixer = WorkloadMixer(
        [variant_factory("a", 0.5), variant_factory("b", 0.3), variant_factory("c", 0.2)]
    )

    assert mixer.pick(0.49).metric_name == "a"
    assert mixer.pick(0.5).metric_name == "b"
    assert mixer.pick(0.79).metric_name == "b"
    assert mixer.pick(0.81).metric_name == "c"


@pytest.mark.parametrize("draw", [-0.1, 1.0, 1.5])
def test_pick_rejects_draws_outside_unit_interval(variant_factory, draw):
    mixer = WorkloadMixer([variant_factory("browse")])

    with pytest.raises(ValueError):
        mixer.pick(draw)


def test_rejects_empty_variant_list():
    with pytest.raises(ScenarioConfigError):
        WorkloadMixer([])


def test_rejects_negative_weight(variant_factory):
    with pytest.raises(ScenarioConfigError, match="negative"):
        WorkloadMixer([variant_factory("browse", 1), variant_factory("submit", -0.5)])


def test_rejects_all_zero_weights(variant_factory):
    with pytest.raises(ScenarioConfigError, match="sum"):
        WorkloadMixer([variant_factory("browse", 0), variant_factory("submit", 0)])


def test_same_seed_gives_same_sequence(variant_factory):
    variants = [variant_factory("browse", 0.8), variant_factory("submit", 0.2)]
    first = WorkloadMixer(variants, rng=random.Random(7))
    second = WorkloadMixer(variants, rng=random.Random(7))

    assert [first.select().metric_name for _ in range(50)] == [
        second.select().metric_name for _ in range(50)
    ]
