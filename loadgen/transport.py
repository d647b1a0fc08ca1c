"""
HTTP transport for the load generator.

The engine only depends on the :class:`Transport` protocol: hand it a
:class:`~loadgen.models.RequestSpec`, get back an
:class:`~loadgen.models.Outcome`.  :class:`RequestsTransport` is the
stock implementation built on ``requests``.

Key Concepts Demonstrated:
- Failures reported as outcomes (``status=0``) instead of exceptions, so
  a timeout in one virtual user never stops the run
- One ``requests.Session`` per thread for connection reuse without
  sharing a session across threads
- Lenient body decoding (non-JSON bodies are kept as text)
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Protocol
from urllib.parse import urljoin

import requests

from loadgen.models import Outcome, RequestSpec

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Anything that can perform one request and report its outcome."""

    def perform(self, spec: RequestSpec) -> Outcome:
        ...


def _safe_body(response: requests.Response) -> Any:
    """
    Return the decoded JSON body, or the raw text if it is not JSON.

    Error pages and gateway timeouts often come back as HTML; decoding
    them must not turn a failed request into a crashed iteration.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class RequestsTransport:
    """
    ``requests``-backed transport with per-thread sessions.

    Args:
        base_url: Prefix for relative request URLs.
        timeout: Default timeout in seconds when a spec does not set one.
    """

    def __init__(self, base_url: str = "", timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/") + "/" if base_url else ""
        self.timeout = timeout
        self._local = threading.local()

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def resolve(self, url: str) -> str:
        """Join *url* onto ``base_url`` unless it is already absolute."""
        if not self.base_url:
            return url
        return urljoin(self.base_url, url.lstrip("/"))

    def perform(self, spec: RequestSpec) -> Outcome:
        url = self.resolve(spec.url)
        started = time.perf_counter()
        try:
            response = self._session().request(
                spec.method,
                url,
                headers=dict(spec.headers),
                json=spec.json,
                timeout=spec.timeout if spec.timeout is not None else self.timeout,
            )
        except requests.RequestException as exc:
            duration_ms = (time.perf_counter() - started) * 1000.0
            logger.debug("%s %s failed: %s", spec.method, url, exc)
            return Outcome(status=0, duration_ms=duration_ms, error=str(exc) or type(exc).__name__)

        duration_ms = (time.perf_counter() - started) * 1000.0
        return Outcome(
            status=response.status_code,
            duration_ms=duration_ms,
            body=_safe_body(response),
        )
