"""
Check predicates evaluated against request outcomes.

Checks are observational: a failing check is counted, never raised, and
never changes whether an iteration produced its sample.  The builders in
:data:`CHECK_BUILDERS` let scenario files refer to checks by kind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from loadgen.models import Check, CheckResult, Outcome

logger = logging.getLogger(__name__)


def status_is(expected: int, name: str | None = None) -> Check:
    """Build a check that passes when the outcome status equals *expected*."""
    return Check(
        name=name or f"status was {expected}",
        predicate=lambda outcome: outcome.status == expected,
    )


def has_json_field(field_name: str, name: str | None = None) -> Check:
    """Build a check that passes when the JSON body carries a non-empty *field_name*."""
    return Check(
        name=name or f"body has {field_name}",
        predicate=lambda outcome: outcome.json_field(field_name) not in (None, ""),
    )


CHECK_BUILDERS: dict[str, Callable[[Any, str | None], Check]] = {
    "status": status_is,
    "json_field": has_json_field,
}


def evaluate(check: Check, outcome: Outcome) -> bool:
    """Run one predicate; a predicate that raises counts as a failure."""
    try:
        return bool(check.predicate(outcome))
    except Exception:
        logger.warning("Check %r raised; counting it as failed", check.name, exc_info=True)
        return False


def evaluate_checks(checks: Iterable[Check], outcome: Outcome) -> list[CheckResult]:
    """Evaluate every check in order and return their results."""
    return [CheckResult(name=check.name, passed=evaluate(check, outcome)) for check in checks]
