"""
Test doubles for the transport capability.

Two transports cover every test in the suite:

- :class:`ScriptedTransport` — returns canned outcomes (optionally after a
  delay or until an event is set) and records every request it saw.
- :class:`FlaskClientTransport` — sends each request through a Flask test
  client, so end-to-end runs exercise the real demo service without
  opening a socket.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

from flask import Flask

from loadgen.models import Outcome, RequestSpec


class ScriptedTransport:
    """
    Transport that answers from a script instead of the network.

    Args:
        responder: Called with each spec; returns the outcome to report.
            Defaults to a 200 with an empty JSON object.
        delay: Seconds to sleep before answering.
        release: If given, every request blocks until this event is set
            (or ``release_timeout`` elapses).
    """

    def __init__(
        self,
        responder: Callable[[RequestSpec], Outcome] | None = None,
        *,
        delay: float = 0.0,
        release: threading.Event | None = None,
        release_timeout: float = 5.0,
    ) -> None:
        self.responder = responder or (lambda spec: Outcome(status=200, duration_ms=1.0, body={}))
        self.delay = delay
        self.release = release
        self.release_timeout = release_timeout
        self._lock = threading.Lock()
        self.requests: list[RequestSpec] = []

    def perform(self, spec: RequestSpec) -> Outcome:
        with self._lock:
            self.requests.append(spec)
        if self.release is not None:
            self.release.wait(self.release_timeout)
        if self.delay:
            time.sleep(self.delay)
        return self.responder(spec)

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.requests)


def login_responder(token: Any = "token-123") -> Callable[[RequestSpec], Outcome]:
    """Responder whose ``/login`` returns *token* and everything else 200."""

    def respond(spec: RequestSpec) -> Outcome:
        if spec.url.endswith("/login"):
            body = {} if token is None else {"token": token}
            return Outcome(status=200, duration_ms=2.0, body=body)
        return Outcome(status=200, duration_ms=5.0, body={"status": "success"})

    return respond


class FlaskClientTransport:
    """Transport that drives a Flask app through its test client."""

    def __init__(self, app: Flask) -> None:
        self.app = app

    def perform(self, spec: RequestSpec) -> Outcome:
        started = time.perf_counter()
        with self.app.test_client() as client:
            response = client.open(
                spec.url,
                method=spec.method,
                headers=dict(spec.headers),
                json=spec.json,
            )
        duration_ms = (time.perf_counter() - started) * 1000.0
        body = response.get_json(silent=True)
        if body is None:
            body = response.get_data(as_text=True)
        return Outcome(status=response.status_code, duration_ms=duration_ms, body=body)
