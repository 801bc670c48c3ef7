"""Agent invocation protocol.

An agent is reached through a hosting service that answers with a
server-sent-event stream. Two call shapes exist: ``act`` constrains the
answer with an action-control instruction (structured JSON expected),
``chat`` is free-form generation.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol
from typing import runtime_checkable


class AgentInvocationError(Exception):
    """Raised by agent clients when a call fails (HTTP, network, IO)."""


@runtime_checkable
class AgentClient(Protocol):
    """Invoke one agent and receive its raw SSE stream.

    Implementations return async iterators of text chunks; chunk
    boundaries need not align with line boundaries.
    """

    def act(
        self,
        access_token: str,
        message: str,
        action_control: str,
    ) -> AsyncIterator[str]: ...

    def chat(self, access_token: str, message: str) -> AsyncIterator[str]: ...
