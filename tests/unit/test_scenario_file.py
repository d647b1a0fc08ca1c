"""
Unit tests for YAML scenario loading.

Key SDET Concepts Demonstrated:
- Loading the shipped example file as a contract test
- ``tmp_path`` for isolated on-disk fixtures
- Parametrized negative tests that assert on the offending field name
"""

from __future__ import annotations

import copy
from pathlib import Path

import pytest
import yaml

from loadgen.actions import RequestAction
from loadgen.errors import ScenarioConfigError
from loadgen.scenario_file import build_scenario, load_scenario, parse_duration
from loadgen.transport import RequestsTransport

pytestmark = pytest.mark.unit

EXAMPLE = Path(__file__).resolve().parents[2] / "scenarios" / "browse_submit.yml"

MINIMAL = {
    "name": "minimal",
    "scenario": {"rate": 5, "duration": "2s", "max_vus": 3},
    "setup": {
        "request": {"method": "post", "path": "/login", "json": {"username": "u"}},
        "extract": {"auth_token": "token"},
    },
    "variants": [
        {"metric": "browse", "weight": 3, "request": {"path": "/browse"}},
        {
            "metric": "submit",
            "weight": 1,
            "request": {"method": "POST", "path": "/submit", "json": {"data": 1}},
            "checks": [{"status": 200}],
        },
    ],
}


@pytest.mark.parametrize(
    ("value", "expected"),
    [("10s", 10.0), ("500ms", 0.5), ("1m", 60.0), ("2h", 7200.0), (3, 3.0), ("1.5s", 1.5), ("7", 7.0)],
)
def test_parse_duration(value, expected):
    assert parse_duration(value, "duration") == pytest.approx(expected)


@pytest.mark.parametrize("value", ["ten seconds", "5d", "", True, None])
def test_parse_duration_rejects_garbage(value):
    with pytest.raises(ScenarioConfigError, match="duration"):
        parse_duration(value, "scenario.duration")


def test_example_scenario_file_loads():
    """The shipped example describes the 1000 rps / 10 s browse/submit profile."""
    scenario = load_scenario(EXAMPLE)

    assert scenario.name == "browse-submit"
    assert scenario.config.rate == 1000
    assert scenario.config.duration == 10.0
    assert scenario.config.preallocated_vus == 1000
    assert scenario.config.max_vus == 1000
    assert scenario.config.graceful_stop == 30.0
    assert [v.metric_name for v in scenario.variants] == [
        "http_req_duration_browse",
        "http_req_duration_submit",
    ]
    assert [v.weight for v in scenario.variants] == [0.8, 0.2]
    assert scenario.setup is not None
    assert scenario.setup.context_keys == ("auth_token",)
    assert scenario.context_requirements() == ("auth_token",)
    assert len(scenario.thresholds) == 5


def test_base_url_override_reaches_transport():
    scenario = load_scenario(EXAMPLE, base_url="http://staging:9000")

    action = scenario.variants[0].action
    assert isinstance(action, RequestAction)
    assert isinstance(action.transport, RequestsTransport)
    assert action.transport.base_url == "http://staging:9000/"


def test_build_scenario_applies_defaults(transport):
    scenario = build_scenario(MINIMAL, transport=transport)

    assert scenario.config.preallocated_vus == 3
    assert scenario.config.time_unit == 1.0
    # Testing config supplies the graceful stop when the file does not.
    assert scenario.config.graceful_stop == 5.0
    assert scenario.setup.request.method == "POST"
    assert scenario.variants[0].action.template.method == "GET"
    assert scenario.variants[0].action.token_key == "auth_token"
    assert scenario.variants[1].checks[0].name == "status was 200"
    assert scenario.thresholds == []


def test_null_graceful_stop_disables_hard_deadline(transport):
    document = copy.deepcopy(MINIMAL)
    document["scenario"]["graceful_stop"] = None

    assert build_scenario(document, transport=transport).config.graceful_stop is None


def test_variants_are_unauthenticated_without_setup(transport):
    document = copy.deepcopy(MINIMAL)
    del document["setup"]

    scenario = build_scenario(document, transport=transport)

    assert scenario.setup is None
    assert scenario.variants[0].action.token_key is None
    assert scenario.context_requirements() == ()


def _broken(path: str, value):
    document = copy.deepcopy(MINIMAL)
    target = document
    keys = path.split(".")
    for key in keys[:-1]:
        target = target[int(key)] if key.isdigit() else target[key]
    if value is _DELETE:
        del target[keys[-1]]
    else:
        target[keys[-1]] = value
    return document


_DELETE = object()


@pytest.mark.parametrize(
    ("path", "value", "message"),
    [
        ("scenario", _DELETE, "scenario"),
        ("scenario.rate", _DELETE, "scenario.rate"),
        ("scenario.rate", "fast", "scenario.rate"),
        ("scenario.rate", 0, "rate"),
        ("scenario.max_vus", _DELETE, "scenario.max_vus"),
        ("scenario.preallocated_vus", 10, "preallocated_vus"),
        ("scenario.duration", "forever", "scenario.duration"),
        ("setup.extract", _DELETE, "setup.extract"),
        ("setup.request", _DELETE, "setup.request"),
        ("variants", [], "variants"),
        ("variants.0.metric", _DELETE, "variants[0].metric"),
        ("variants.0.request", {"method": "GET"}, "variants[0].request.path"),
        ("variants.0.auth", "session_id", "variants[0].auth"),
        ("variants.1.checks", [{"status": 200, "json_field": "id"}], "variants[1].checks[0]"),
        ("variants.1.checks", "status", "variants[1].checks"),
    ],
)
def test_invalid_documents_name_the_field(transport, path, value, message):
    with pytest.raises(ScenarioConfigError, match=message.replace("[", r"\[").replace("]", r"\]")):
        build_scenario(_broken(path, value), transport=transport)


def test_negative_weight_is_rejected_when_mixing(transport):
    """Weights are validated by the mixer when the run starts."""
    from loadgen.mixer import WorkloadMixer

    scenario = build_scenario(_broken("variants.0.weight", -1), transport=transport)

    with pytest.raises(ScenarioConfigError, match="negative"):
        WorkloadMixer(scenario.variants)


def test_load_scenario_reports_missing_file(tmp_path):
    with pytest.raises(ScenarioConfigError, match="cannot read"):
        load_scenario(tmp_path / "absent.yml")


def test_load_scenario_reports_invalid_yaml(tmp_path):
    path = tmp_path / "broken.yml"
    path.write_text("scenario: [unclosed", encoding="utf-8")

    with pytest.raises(ScenarioConfigError, match="not valid YAML"):
        load_scenario(path)


def test_load_scenario_round_trips_written_file(tmp_path, transport):
    path = tmp_path / "minimal.yml"
    path.write_text(yaml.safe_dump(MINIMAL), encoding="utf-8")

    scenario = load_scenario(path, transport=transport)

    assert scenario.name == "minimal"
    assert scenario.config.duration == 2.0
