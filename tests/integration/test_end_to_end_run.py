"""
End-to-end runs of the engine against the demo target service.

Each test runs the real scheduler for about a second, so the module is
marked ``slow`` as well as ``integration``.

Key SDET Concepts Demonstrated:
- Full setup -> pacing -> drain -> report flow without a network socket
- Statistical assertions with explicit tolerances
- Failure injection at the setup phase
"""

from __future__ import annotations

import dataclasses
import random
from pathlib import Path

import pytest

from loadgen.actions import RequestAction
from loadgen.checks import status_is
from loadgen.errors import SetupError
from loadgen.metrics import MetricsAggregator
from loadgen.models import RequestSpec, ScenarioConfig, Variant
from loadgen.runner import Scenario, run_scenario
from loadgen.scenario_file import load_scenario
from loadgen.setup_phase import SetupPhaseRunner
from tests.helpers import ScriptedTransport, login_responder

pytestmark = [pytest.mark.integration, pytest.mark.slow]

EXAMPLE = Path(__file__).resolve().parents[2] / "scenarios" / "browse_submit.yml"


def _browse_submit(transport, config: ScenarioConfig, username: str) -> Scenario:
    return Scenario(
        name="browse-submit",
        config=config,
        setup=SetupPhaseRunner(
            transport,
            RequestSpec("POST", "/login", json={"username": username}),
            extract={"auth_token": "token"},
        ),
        variants=[
            Variant(
                "http_req_duration_browse",
                0.8,
                RequestAction(transport, RequestSpec("GET", "/browse")),
                checks=(status_is(200, "browse status was 200"),),
            ),
            Variant(
                "http_req_duration_submit",
                0.2,
                RequestAction(transport, RequestSpec("POST", "/submit", json={"data": "sample"})),
                checks=(status_is(200, "submit status was 200"),),
            ),
        ],
    )


def test_every_tick_produces_exactly_one_sample(app_transport, username):
    """10 iterations/s for 1 s with spare capacity yields 10 samples in total."""
    # Arrange
    config = ScenarioConfig(rate=10, duration=1.0, preallocated_vus=2, max_vus=10, graceful_stop=5.0)
    scenario = _browse_submit(app_transport, config, username)

    # Act
    result = run_scenario(scenario, rng=random.Random(7))

    # Assert
    snapshot = result.snapshot
    assert result.schedule.ticks == 10
    assert snapshot.dropped_iterations == 0
    assert snapshot.skipped_iterations == 0
    assert snapshot.count("http_req_duration_browse") + snapshot.count("http_req_duration_submit") == 10
    assert snapshot.checks_pass_rate == 1.0
    for summary in snapshot.metrics.values():
        assert summary.failures == 0


def test_mix_converges_on_weights(app_transport, username):
    """At 200 iterations/s the browse share lands near 80 %."""
    config = ScenarioConfig(rate=200, duration=1.0, preallocated_vus=20, max_vus=50, graceful_stop=5.0)
    scenario = _browse_submit(app_transport, config, username)

    result = run_scenario(scenario, rng=random.Random(1234))

    snapshot = result.snapshot
    browse = snapshot.count("http_req_duration_browse")
    submit = snapshot.count("http_req_duration_submit")
    assert result.schedule.ticks >= 190
    assert browse + submit + snapshot.dropped_iterations == result.schedule.ticks
    assert browse + submit >= 150
    assert browse / (browse + submit) == pytest.approx(0.8, abs=0.1)


def test_setup_failure_dispatches_nothing():
    """A login without a token aborts the run before any iteration."""
    transport = ScriptedTransport(login_responder(token=None))
    config = ScenarioConfig(rate=10, duration=1.0, preallocated_vus=1, max_vus=2)
    scenario = _browse_submit(transport, config, "nobody")
    aggregator = MetricsAggregator()

    with pytest.raises(SetupError, match="token"):
        run_scenario(scenario, aggregator=aggregator)

    assert transport.call_count == 1
    assert transport.requests[0].url == "/login"
    assert aggregator.snapshot().total_samples == 0


def test_example_scenario_file_against_demo_target(app_transport):
    """The shipped scenario passes its own thresholds when scaled down."""
    scenario = load_scenario(EXAMPLE, transport=app_transport)
    scenario = dataclasses.replace(
        scenario,
        config=ScenarioConfig(rate=50, duration=1.0, preallocated_vus=10, max_vus=30, graceful_stop=5.0),
    )

    result = run_scenario(scenario, rng=random.Random(99))

    assert result.scenario == "browse-submit"
    assert result.schedule.ticks >= 45
    assert result.snapshot.checks["login status was 200"].passes == 1
    assert result.snapshot.checks_pass_rate == 1.0
    assert result.passed, [r for r in result.thresholds if not r.passed]
