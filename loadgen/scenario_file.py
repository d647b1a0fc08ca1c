"""
Load scenario definitions from YAML.

A scenario file describes one constant-arrival-rate test: the pacing
block, an optional setup request whose response fields become the shared
context, the weighted variants, and the thresholds.  See
``scenarios/browse_submit.yml`` for a complete example.

Every validation error is raised as
:class:`~loadgen.errors.ScenarioConfigError` naming the offending field,
so the CLI can report it without a traceback.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from loadgen.actions import RequestAction
from loadgen.checks import CHECK_BUILDERS
from loadgen.config import Config, get_config
from loadgen.errors import ScenarioConfigError
from loadgen.models import Check, RequestSpec, ScenarioConfig, Variant
from loadgen.runner import Scenario
from loadgen.setup_phase import SetupPhaseRunner
from loadgen.thresholds import parse_thresholds
from loadgen.transport import RequestsTransport, Transport

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: Any, field_name: str) -> float:
    """
    Convert ``"10s"``, ``"500ms"``, ``"1m"``, ``"2h"`` or a number to seconds.

    Bare numbers are seconds.

    Raises:
        ScenarioConfigError: If *value* is not a recognised duration.
    """
    if isinstance(value, bool):
        raise ScenarioConfigError(f"{field_name} must be a duration, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_PATTERN.match(str(value))
    if match is None:
        raise ScenarioConfigError(f"{field_name} must be a duration like '10s', got {value!r}")
    amount, unit = match.groups()
    return float(amount) * _UNIT_SECONDS[unit]


def _require(mapping: Mapping[str, Any], key: str, field_name: str) -> Any:
    if key not in mapping or mapping[key] is None:
        raise ScenarioConfigError(f"missing required field {field_name}")
    return mapping[key]


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ScenarioConfigError(f"{field_name} must be a mapping")
    return value


def _number(value: Any, field_name: str, kind: type = float) -> Any:
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ScenarioConfigError(f"{field_name} must be numeric, got {value!r}") from exc


def _parse_config(data: Mapping[str, Any], defaults: type[Config]) -> ScenarioConfig:
    max_vus = _number(_require(data, "max_vus", "scenario.max_vus"), "scenario.max_vus", int)
    graceful_stop = data.get("graceful_stop", defaults.GRACEFUL_STOP)
    return ScenarioConfig(
        rate=_number(_require(data, "rate", "scenario.rate"), "scenario.rate"),
        duration=parse_duration(_require(data, "duration", "scenario.duration"), "scenario.duration"),
        preallocated_vus=_number(
            data.get("preallocated_vus", max_vus), "scenario.preallocated_vus", int
        ),
        max_vus=max_vus,
        time_unit=parse_duration(data.get("time_unit", 1), "scenario.time_unit"),
        graceful_stop=(
            None
            if graceful_stop is None
            else parse_duration(graceful_stop, "scenario.graceful_stop")
        ),
    )


def _parse_request(data: Any, field_name: str) -> RequestSpec:
    data = _mapping(data, field_name)
    url = data.get("url") or data.get("path")
    if not url:
        raise ScenarioConfigError(f"missing required field {field_name}.path")
    headers = _mapping(data.get("headers"), f"{field_name}.headers")
    timeout = data.get("timeout")
    return RequestSpec(
        method=str(data.get("method", "GET")).upper(),
        url=str(url),
        headers={str(k): str(v) for k, v in headers.items()},
        json=data.get("json"),
        timeout=None if timeout is None else parse_duration(timeout, f"{field_name}.timeout"),
        name=data.get("name"),
    )


def _parse_checks(items: Any, field_name: str) -> tuple[Check, ...]:
    if items is None:
        return ()
    if not isinstance(items, list):
        raise ScenarioConfigError(f"{field_name} must be a list")

    checks: list[Check] = []
    for index, item in enumerate(items):
        item = _mapping(item, f"{field_name}[{index}]")
        kinds = [kind for kind in CHECK_BUILDERS if kind in item]
        if len(kinds) != 1:
            raise ScenarioConfigError(
                f"{field_name}[{index}] must set exactly one of {', '.join(CHECK_BUILDERS)}"
            )
        kind = kinds[0]
        argument = item[kind]
        if kind == "status":
            argument = _number(argument, f"{field_name}[{index}].status", int)
        checks.append(CHECK_BUILDERS[kind](argument, item.get("name")))
    return tuple(checks)


def build_scenario(
    document: Mapping[str, Any],
    *,
    transport: Transport | None = None,
    base_url: str | None = None,
    env: str | None = None,
) -> Scenario:
    """
    Build a :class:`~loadgen.runner.Scenario` from a parsed YAML document.

    Args:
        document: Parsed scenario file.
        transport: Transport to use; a :class:`RequestsTransport` for the
            resolved base URL by default.
        base_url: Overrides ``base_url`` from the document.
        env: Configuration environment used for defaults.

    Raises:
        ScenarioConfigError: If the document is invalid.
    """
    if not isinstance(document, Mapping):
        raise ScenarioConfigError("scenario file must contain a mapping")
    defaults = get_config(env)
    if transport is None:
        transport = RequestsTransport(
            base_url=base_url or document.get("base_url") or defaults.BASE_URL,
            timeout=defaults.REQUEST_TIMEOUT,
        )

    config = _parse_config(_mapping(_require(document, "scenario", "scenario"), "scenario"), defaults)

    setup = None
    extract: dict[str, str] = {}
    setup_data = document.get("setup")
    if setup_data is not None:
        setup_data = _mapping(setup_data, "setup")
        extract = {
            str(k): str(v)
            for k, v in _mapping(_require(setup_data, "extract", "setup.extract"), "setup.extract").items()
        }
        setup = SetupPhaseRunner(
            transport=transport,
            request=_parse_request(_require(setup_data, "request", "setup.request"), "setup.request"),
            extract=extract,
            checks=_parse_checks(setup_data.get("checks"), "setup.checks"),
        )

    raw_variants = _require(document, "variants", "variants")
    if not isinstance(raw_variants, list) or not raw_variants:
        raise ScenarioConfigError("variants must be a non-empty list")

    default_token_key = "auth_token" if "auth_token" in extract else None
    variants: list[Variant] = []
    for index, item in enumerate(raw_variants):
        field_name = f"variants[{index}]"
        item = _mapping(item, field_name)
        token_key = item.get("auth", default_token_key)
        if token_key is not None and token_key not in extract:
            raise ScenarioConfigError(
                f"{field_name}.auth refers to {token_key!r}, which setup does not extract"
            )
        variants.append(
            Variant(
                metric_name=str(_require(item, "metric", f"{field_name}.metric")),
                weight=_number(item.get("weight", 1), f"{field_name}.weight"),
                action=RequestAction(
                    transport,
                    _parse_request(_require(item, "request", f"{field_name}.request"), f"{field_name}.request"),
                    token_key=token_key,
                ),
                checks=_parse_checks(item.get("checks"), f"{field_name}.checks"),
            )
        )

    return Scenario(
        name=str(document.get("name", "scenario")),
        config=config,
        variants=variants,
        setup=setup,
        thresholds=parse_thresholds(_mapping(document.get("thresholds"), "thresholds")),
    )


def load_scenario(
    path: Path | str,
    *,
    transport: Transport | None = None,
    base_url: str | None = None,
    env: str | None = None,
) -> Scenario:
    """
    Read and build a scenario from the YAML file at *path*.

    Raises:
        ScenarioConfigError: If the file is unreadable, not valid YAML, or
            describes an invalid scenario.
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            document = yaml.safe_load(handle)
    except OSError as exc:
        raise ScenarioConfigError(f"cannot read scenario file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ScenarioConfigError(f"scenario file {path} is not valid YAML: {exc}") from exc

    return build_scenario(document or {}, transport=transport, base_url=base_url, env=env)
