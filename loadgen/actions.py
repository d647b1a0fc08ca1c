"""
Variant actions that turn the shared context into a request.

A :class:`~loadgen.models.Variant` only knows it has a callable that takes
the shared context and returns an outcome.  :class:`RequestAction` is the
callable used for HTTP variants: it builds the request from a template,
attaches the bearer token published by the setup phase, and hands the
request to the transport.
"""

from __future__ import annotations

from dataclasses import replace

from loadgen.models import Outcome, RequestSpec, SharedContext
from loadgen.transport import Transport


def auth_header(token: str) -> dict[str, str]:
    """
    Build standard bearer auth headers for JSON API requests.

    Args:
        token: Session token returned by the login request.

    Returns:
        A header dict with ``Authorization``, ``Content-Type`` and ``Accept``.
    """
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


class RequestAction:
    """
    Callable that performs *template* with the context's bearer token.

    Args:
        transport: Transport used to issue the request.
        template: Request to send; its headers are merged over the auth
            headers so a scenario can still override ``Content-Type``.
        token_key: Context key holding the bearer token, or ``None`` to
            send the request unauthenticated.
    """

    def __init__(
        self,
        transport: Transport,
        template: RequestSpec,
        token_key: str | None = "auth_token",
    ) -> None:
        self.transport = transport
        self.template = template
        self.token_key = token_key

    def build(self, context: SharedContext) -> RequestSpec:
        headers: dict[str, str] = {}
        if self.token_key is not None:
            headers.update(auth_header(str(context[self.token_key])))
        headers.update(self.template.headers)
        return replace(self.template, headers=headers)

    def __call__(self, context: SharedContext) -> Outcome:
        return self.transport.perform(self.build(context))

    def __repr__(self) -> str:
        return f"RequestAction({self.template.method} {self.template.url})"
