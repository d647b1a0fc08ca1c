"""
Exception types raised by the load generator.

Only two categories ever reach the caller of a run: configuration errors
(detected before anything is dispatched) and setup failures (the one
fatal runtime condition).  Everything that goes wrong inside an
individual iteration is recorded as data instead.
"""

from __future__ import annotations


class LoadgenError(Exception):
    """Base class for all load generator errors."""


class ScenarioConfigError(LoadgenError, ValueError):
    """Raised when a scenario, variant list or threshold definition is invalid."""


class SetupError(LoadgenError):
    """
    Raised when the setup phase cannot produce a usable shared context.

    Attributes:
        reason: Human-readable abort reason, suitable for CLI output.
        status: HTTP status of the setup request, or ``None`` when the
            request never produced a response.
    """

    def __init__(self, reason: str, *, status: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status = status
