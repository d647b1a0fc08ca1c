"""
Shared pytest fixtures for the loadgen test suite.

Key Concepts Demonstrated:
- Fixture scopes (function for mutable engine state, session for the app)
- Factory fixtures for variants and scenario configs
- Faker-generated identities so integration runs never reuse a username
"""

from __future__ import annotations

import os
from collections.abc import Callable

import pytest
from faker import Faker

os.environ["FLASK_ENV"] = "testing"
os.environ["LOADGEN_ENV"] = "testing"

from loadgen.actions import RequestAction
from loadgen.checks import status_is
from loadgen.metrics import MetricsAggregator
from loadgen.models import Outcome, RequestSpec, ScenarioConfig, SharedContext, Variant
from target_app import create_app
from tests.helpers import FlaskClientTransport, ScriptedTransport

fake = Faker()


# -----------------------------------------------------------------------------
# Engine Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def aggregator() -> MetricsAggregator:
    """Fresh aggregator per test so counts never leak between tests."""
    return MetricsAggregator()


@pytest.fixture
def transport() -> ScriptedTransport:
    """Transport that answers every request with a fast 200."""
    return ScriptedTransport()


@pytest.fixture
def context() -> SharedContext:
    return SharedContext({"auth_token": "token-123"})


@pytest.fixture
def variant_factory(transport) -> Callable[..., Variant]:
    """
    Build variants whose action goes through the scripted transport.

    Example:
        def test_something(variant_factory):
            browse = variant_factory("browse", 0.8)
    """

    def _create(metric_name: str, weight: float = 1.0, path: str | None = None) -> Variant:
        return Variant(
            metric_name=metric_name,
            weight=weight,
            action=RequestAction(transport, RequestSpec("GET", path or f"/{metric_name}")),
            checks=(status_is(200, f"{metric_name} status was 200"),),
        )

    return _create


@pytest.fixture
def scenario_config_factory() -> Callable[..., ScenarioConfig]:
    """Build configs with test-friendly defaults (short graceful stop)."""

    def _create(**overrides) -> ScenarioConfig:
        values = {
            "rate": 10,
            "duration": 1.0,
            "preallocated_vus": 2,
            "max_vus": 10,
            "graceful_stop": 5.0,
        }
        values.update(overrides)
        return ScenarioConfig(**values)

    return _create


@pytest.fixture
def failing_outcome() -> Outcome:
    return Outcome(status=0, duration_ms=3.0, error="connection refused")


# -----------------------------------------------------------------------------
# Demo Target Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture(scope="session")
def app():
    """Demo target app built once per session with the testing config."""
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def app_transport(app) -> FlaskClientTransport:
    return FlaskClientTransport(app)


@pytest.fixture
def username() -> str:
    return fake.unique.user_name()
