"""
Command-line entry point: ``loadgen run SCENARIO.yml``.

Loads a scenario file, runs it, prints a per-metric summary table and the
threshold results, and exits with a three-state code so CI can tell a
slow service from a broken test:

- ``0``: run completed and every threshold passed
- ``1``: run completed but at least one threshold was breached
- ``2``: the run could not start (bad scenario file, setup failure) or its
  summary could not be written
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from loadgen.config import get_config
from loadgen.errors import ScenarioConfigError, SetupError
from loadgen.runner import RunResult, run_scenario
from loadgen.scenario_file import load_scenario

EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_RUN_ERROR = 2

logger = logging.getLogger("loadgen")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loadgen",
        description="Constant-arrival-rate load generator.",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    run = subcommands.add_parser("run", help="Run a scenario file")
    run.add_argument("scenario", type=Path, help="Path to a scenario YAML file")
    run.add_argument("--base-url", help="Override the scenario's base_url")
    run.add_argument(
        "--env",
        help="Configuration environment (development, testing, production)",
    )
    run.add_argument(
        "--summary-json",
        type=Path,
        help="Also write the metrics snapshot to this file as JSON",
    )
    return parser


def _print_summary(result: RunResult) -> None:
    """Print a human-readable results table to stdout."""
    snapshot = result.snapshot
    schedule = result.schedule

    print(f"Scenario: {result.scenario}")
    print("-" * 86)
    print(
        f"{'Metric':<30}{'Count':>8}{'Fail%':>8}{'Min':>8}{'Mean':>8}"
        f"{'p90':>8}{'p95':>8}{'Max':>8}"
    )
    print("-" * 86)
    for name in sorted(snapshot.metrics):
        s = snapshot.metrics[name]
        print(
            f"{name:<30}{s.count:>8}{s.error_rate_percent:>8.2f}{s.min:>8.1f}"
            f"{s.mean:>8.1f}{s.p90:>8.1f}{s.p95:>8.1f}{s.max:>8.1f}"
        )
    print("-" * 86)

    for name in sorted(snapshot.checks):
        check = snapshot.checks[name]
        print(f"check {name!r}: {check.passes} passed, {check.fails} failed")

    print(
        f"Dispatched {schedule.dispatched} / {schedule.ticks} ticks, "
        f"dropped {snapshot.dropped_iterations}, skipped {snapshot.skipped_iterations}, "
        f"interrupted {snapshot.interrupted_iterations} ({schedule.elapsed:.2f}s)"
    )

    for threshold_result in result.thresholds:
        threshold = threshold_result.threshold
        actual = "n/a" if threshold_result.actual is None else f"{threshold_result.actual:.2f}"
        status = "PASS" if threshold_result.passed else "FAIL"
        print(f"{threshold.metric}.{threshold.stat:<26}{actual:>12}{threshold.limit:>12.2f}{status:>8}")
    if result.thresholds:
        print(f"Overall: {'PASS' if result.passed else 'FAIL'}")


def main(argv: Sequence[str] | None = None) -> int:
    """
    Parse arguments, run the scenario and report.

    Returns:
        One of ``EXIT_PASS``, ``EXIT_THRESHOLD_BREACH`` or ``EXIT_RUN_ERROR``.
    """
    args = build_parser().parse_args(argv)
    settings = get_config(args.env)
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        scenario = load_scenario(args.scenario, base_url=args.base_url, env=args.env)
        result = run_scenario(scenario)
    except ScenarioConfigError as exc:
        print(f"Invalid scenario: {exc}", file=sys.stderr)
        return EXIT_RUN_ERROR
    except SetupError as exc:
        logger.error("Setup phase failed, aborting run: %s", exc.reason)
        print(f"Run aborted: {exc.reason}", file=sys.stderr)
        return EXIT_RUN_ERROR

    _print_summary(result)
    if args.summary_json is not None:
        try:
            args.summary_json.write_text(
                json.dumps(result.snapshot.to_dict(), indent=2), encoding="utf-8"
            )
        except OSError as exc:
            print(f"Cannot write summary to {args.summary_json}: {exc}", file=sys.stderr)
            return EXIT_RUN_ERROR
    return EXIT_PASS if result.passed else EXIT_THRESHOLD_BREACH


if __name__ == "__main__":
    raise SystemExit(main())
