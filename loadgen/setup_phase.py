"""
One-shot setup phase that publishes the shared context.

Runs a single request (typically a login) before any virtual user is
dispatched, pulls the fields the iterations need out of the response,
and freezes them into a :class:`~loadgen.models.SharedContext`.  Any
failure here is fatal to the run: without a token there is nothing
meaningful for the virtual users to do.

Key Concepts Demonstrated:
- Single-writer-then-freeze publication of shared data
- Fatal errors raised with an explicit, user-facing reason
- Setup checks counted alongside iteration checks
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, Sequence

from loadgen.checks import evaluate_checks
from loadgen.errors import SetupError
from loadgen.metrics import MetricsAggregator
from loadgen.models import Check, RequestSpec, SharedContext
from loadgen.transport import Transport

logger = logging.getLogger(__name__)


class SetupPhaseRunner:
    """
    Execute the setup request exactly once and build the shared context.

    Args:
        transport: Transport used for the setup request.
        request: The setup request (e.g. ``POST /login``).
        extract: Mapping of context key to response body field, for
            example ``{"auth_token": "token"}``.
        checks: Checks evaluated against the setup outcome.
        aggregator: Where setup check results are counted, if anywhere.
    """

    def __init__(
        self,
        transport: Transport,
        request: RequestSpec,
        extract: Mapping[str, str],
        checks: Sequence[Check] = (),
        aggregator: MetricsAggregator | None = None,
    ) -> None:
        self.transport = transport
        self.request = request
        self.extract = dict(extract)
        self.checks = tuple(checks)
        self.aggregator = aggregator
        self._lock = threading.Lock()
        self._ran = False

    @property
    def context_keys(self) -> tuple[str, ...]:
        """Context keys this runner publishes."""
        return tuple(self.extract)

    def fresh(self) -> SetupPhaseRunner:
        """Return a copy that has not run yet, for another run of the same scenario."""
        return SetupPhaseRunner(
            self.transport, self.request, self.extract, self.checks, self.aggregator
        )

    def run(self, aggregator: MetricsAggregator | None = None) -> SharedContext:
        """
        Perform the setup request and return the published context.

        Args:
            aggregator: Where setup check results are counted; defaults to
                the runner's own ``aggregator``.

        Returns:
            A read-only :class:`SharedContext` holding every extracted field.

        Raises:
            SetupError: If the request failed, returned a non-2xx status,
                or lacked any of the fields named in ``extract``.
            RuntimeError: If called a second time.
        """
        with self._lock:
            if self._ran:
                raise RuntimeError("setup phase has already run")
            self._ran = True

        if aggregator is None:
            aggregator = self.aggregator

        logger.info("Running setup request %s %s", self.request.method, self.request.url)
        outcome = self.transport.perform(self.request)

        for result in evaluate_checks(self.checks, outcome):
            if aggregator is not None:
                aggregator.record_check(result)

        if outcome.error is not None:
            raise SetupError(f"setup request failed: {outcome.error}")
        if not 200 <= outcome.status < 300:
            raise SetupError(
                f"setup request returned status {outcome.status}", status=outcome.status
            )

        data = {}
        for context_key, body_field in self.extract.items():
            value = outcome.json_field(body_field)
            if value in (None, ""):
                raise SetupError(
                    f"setup response is missing required field {body_field!r}",
                    status=outcome.status,
                )
            data[context_key] = value

        logger.info("Setup complete; published context keys: %s", ", ".join(data) or "-")
        return SharedContext(data)
